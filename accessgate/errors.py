"""
AccessGate error taxonomy

TransportError is the only condition the decision engine retries. Everything
else ends the run in Fallback, or (for the store errors) degrades to treating
the cached grant as absent.
"""

from typing import Optional

from accessgate.reasons import ReasonCode, get_hint


class AccessGateError(Exception):
    """Base class for all AccessGate errors"""

    reason_code: ReasonCode = ReasonCode.OK

    def __init__(self, message: str, reason_code: Optional[ReasonCode] = None):
        super().__init__(message)
        if reason_code is not None:
            self.reason_code = reason_code

    @property
    def hint(self) -> str:
        return get_hint(self.reason_code)


class StoreError(AccessGateError):
    """Secure store backend rejected an operation"""

    reason_code = ReasonCode.STORE_UNAVAILABLE


class NotFound(AccessGateError):
    """Secure store entry is absent (normal on first run)"""

    reason_code = ReasonCode.RECORD_MISSING


class TransportError(AccessGateError):
    """Network-layer failure reaching the control endpoint"""

    reason_code = ReasonCode.TRANSPORT_FAILURE


class ParseError(AccessGateError):
    """Control endpoint answered with a body that is not <token>#<url>"""

    reason_code = ReasonCode.MALFORMED_RESPONSE


class ConfigurationError(AccessGateError):
    """Static configuration is malformed (never retried)"""

    reason_code = ReasonCode.INVALID_CONFIG


class InvalidTransitionError(AccessGateError):
    """Illegal DecisionState transition"""

    reason_code = ReasonCode.INVALID_TRANSITION
