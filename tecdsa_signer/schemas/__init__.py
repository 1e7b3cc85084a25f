"""Signing coordinator schemas."""

from .common import HexBytes, HexInt, PartyIndex, RoundNumber
from .enums import ErrorCategory, SessionState
from .envelope import ProceedResult, RoundEnvelope
from .keys import LocalKey
from .signature import PartialSignature, SignatureRecid, SignatureResult

__all__ = [
    # Field types
    "HexBytes",
    "HexInt",
    "PartyIndex",
    "RoundNumber",
    # Enums
    "ErrorCategory",
    "SessionState",
    # Envelopes
    "RoundEnvelope",
    "ProceedResult",
    # Keys
    "LocalKey",
    # Signatures
    "PartialSignature",
    "SignatureRecid",
    "SignatureResult",
]
