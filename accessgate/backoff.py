"""Retry backoff for transport failures"""


def backoff_delay(
    attempt: int,
    base_seconds: float = 2.0,
    max_exponent: int = 6,
    cap_seconds: float = 30.0,
) -> float:
    """
    Delay before the next attempt after `attempt` consecutive failures.

    delay = min(base ** min(attempt, max_exponent), cap)

    With the defaults: 2, 4, 8, 16, 30, 30, ...
    """
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return min(base_seconds ** min(attempt, max_exponent), cap_seconds)
