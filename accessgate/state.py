"""
Decision state machine and its single-writer publisher

Observers subscribe to a StatePublisher and see every transition exactly once,
in order. The engine is the only writer.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from accessgate.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class DecisionKind(str, Enum):
    """Decision state identifiers"""
    IDLE = "IDLE"
    CHECKING = "CHECKING"
    ALLOWED = "ALLOWED"
    FALLBACK = "FALLBACK"


class FallbackReason(str, Enum):
    """Why a run fell back to local mode (telemetry only)"""
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    REJECTED_TOKEN = "REJECTED_TOKEN"
    INVALID_CONFIG = "INVALID_CONFIG"


# Define allowed state transitions
ALLOWED_TRANSITIONS: Dict[DecisionKind, List[DecisionKind]] = {
    DecisionKind.IDLE: [DecisionKind.CHECKING, DecisionKind.ALLOWED],
    DecisionKind.CHECKING: [DecisionKind.ALLOWED, DecisionKind.FALLBACK],
    DecisionKind.ALLOWED: [],   # Terminal state
    DecisionKind.FALLBACK: [],  # Terminal state
}


def can_transition(from_kind: DecisionKind, to_kind: DecisionKind) -> bool:
    """Check if a state transition is legal"""
    return to_kind in ALLOWED_TRANSITIONS.get(from_kind, [])


@dataclass(frozen=True)
class DecisionState:
    """Current value of the decision state machine"""
    kind: DecisionKind
    token: Optional[str] = None
    url: Optional[str] = None
    reason: Optional[FallbackReason] = None

    @classmethod
    def idle(cls) -> "DecisionState":
        return cls(DecisionKind.IDLE)

    @classmethod
    def checking(cls) -> "DecisionState":
        return cls(DecisionKind.CHECKING)

    @classmethod
    def allowed(cls, token: str, url: str) -> "DecisionState":
        return cls(DecisionKind.ALLOWED, token=token, url=url)

    @classmethod
    def fallback(cls, reason: FallbackReason) -> "DecisionState":
        return cls(DecisionKind.FALLBACK, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.kind]

    def __str__(self) -> str:
        if self.kind == DecisionKind.ALLOWED:
            return f"ALLOWED({self.url})"
        if self.kind == DecisionKind.FALLBACK:
            return f"FALLBACK({self.reason.value if self.reason else '-'})"
        return self.kind.value


StateCallback = Callable[[DecisionState], None]


class StatePublisher:
    """
    Observable DecisionState with a single writer

    - New subscribers immediately receive the current value
    - publish() validates the transition and delivers it to every
      subscriber before returning
    - Delivery is serialized by a lock, so observers never see
      transitions out of order
    """

    def __init__(self, initial: Optional[DecisionState] = None):
        self._value = initial or DecisionState.idle()
        self._subscribers: List[StateCallback] = []
        self._lock = threading.RLock()

    @property
    def value(self) -> DecisionState:
        return self._value

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """
        Register a callback and replay the current value to it

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)
            self._deliver(callback, self._value)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: StateCallback) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, state: DecisionState) -> None:
        """
        Transition to state and notify subscribers

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        with self._lock:
            current = self._value
            if not can_transition(current.kind, state.kind):
                raise InvalidTransitionError(
                    f"Illegal decision transition {current.kind.value} -> {state.kind.value}"
                )
            self._value = state
            logger.info(f"Decision state: {current} -> {state}")
            for callback in list(self._subscribers):
                self._deliver(callback, state)

    def _deliver(self, callback: StateCallback, state: DecisionState) -> None:
        try:
            callback(state)
        except Exception as e:
            logger.error(f"State subscriber error ({getattr(callback, '__name__', callback)}): {e}", exc_info=True)
