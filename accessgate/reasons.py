"""
Standard Reason Codes for AccessGate

Unified reason codes across the secret store, the directive client and the
decision engine. Each code has a standard hint for log output and the CLI.
"""

from enum import Enum
from typing import Dict, Optional


class ReasonCode(str, Enum):
    """Standard reason codes for status explanation"""

    # Configuration issues
    INVALID_CONFIG = "INVALID_CONFIG"

    # Network/connectivity issues
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    TIMEOUT = "TIMEOUT"

    # Response/parsing issues
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    REJECTED_TOKEN = "REJECTED_TOKEN"

    # Secret store
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    RECORD_MISSING = "RECORD_MISSING"
    PERMISSION_NOT_600 = "PERMISSION_NOT_600"

    # State machine
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Success/OK states
    OK = "OK"


# Standard hints for each reason code
REASON_HINTS: Dict[ReasonCode, Optional[str]] = {
    # Configuration
    ReasonCode.INVALID_CONFIG: "Control endpoint is not an absolute http(s) URL. Check accessgate.yaml.",

    # Network
    ReasonCode.TRANSPORT_FAILURE: "Control endpoint unreachable. Retrying with backoff.",
    ReasonCode.TIMEOUT: "Request to control endpoint timed out. Retrying with backoff.",

    # Response
    ReasonCode.MALFORMED_RESPONSE: "Control endpoint returned a body that is not <token>#<url>.",
    ReasonCode.REJECTED_TOKEN: "Control endpoint returned a token that does not match this build.",

    # Secret store
    ReasonCode.STORE_UNAVAILABLE: "Secret store rejected the operation. Cached grant ignored.",
    ReasonCode.RECORD_MISSING: "No stored verification token (first run).",
    ReasonCode.PERMISSION_NOT_600: "Secrets file has insecure permissions. Run: chmod 600 ~/.accessgate/secrets.json",

    # State
    ReasonCode.INVALID_TRANSITION: "Decision state machine received an illegal transition.",

    # OK
    ReasonCode.OK: None,  # No hint needed for OK state
}


def get_hint(reason_code: ReasonCode) -> str:
    """Get standard hint for a reason code"""
    return REASON_HINTS.get(reason_code) or ""
