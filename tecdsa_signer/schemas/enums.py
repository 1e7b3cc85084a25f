"""Enumerations for the signing coordinator."""

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle state of a signing session."""

    CONSTRUCTED = "constructed"
    ROUND_EXCHANGE = "round_exchange"
    OFFLINE_READY = "offline_ready"
    PARTIAL_ISSUED = "partial_issued"
    SIGNATURE_COMPLETE = "signature_complete"
    FAILED = "failed"


class ErrorCategory(str, Enum):
    """Error taxonomy for signing operations."""

    CONFIGURATION = "configuration"  # Bad construction inputs - no session exists
    PROTOCOL = "protocol"  # Bad peer message or engine failure - discard session
    PRECONDITION = "precondition"  # Operation called out of order - caller misuse
    VERIFICATION = "verification"  # Combined signature invalid - discard session
