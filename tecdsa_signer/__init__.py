"""Threshold-ECDSA signing session coordinator."""

from .address import address, verify_signature
from .config import SignerSettings, get_settings
from .engine import (
    CompletedOfflineStage,
    ManualSigning,
    OfflineStage,
    OfflineStageFactory,
    OutgoingMessage,
)
from .exceptions import (
    CombinationError,
    CompletedOfflineStageUnavailableError,
    ConfigurationError,
    DigestSizeError,
    DuplicateMessageError,
    MalformedMessageError,
    OfflineStageIncompleteError,
    OutOfRoundError,
    PartialAlreadyIssuedError,
    PreconditionError,
    ProtocolError,
    SessionFailedError,
    SessionStateError,
    SignatureVerificationError,
    SignerError,
    SigningTimeoutError,
    UnknownPartyError,
)
from .local import LocalSigningCluster, run_local_signing
from .schemas import (
    ErrorCategory,
    LocalKey,
    PartialSignature,
    ProceedResult,
    RoundEnvelope,
    SessionState,
    SignatureRecid,
    SignatureResult,
)
from .session import SigningSession
from .simulation import SimulatedOfflineStage, simulate_keygen

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "SigningSession",
    "LocalSigningCluster",
    "run_local_signing",
    "SignerSettings",
    "get_settings",
    # Engine interface
    "OfflineStage",
    "OfflineStageFactory",
    "CompletedOfflineStage",
    "ManualSigning",
    "OutgoingMessage",
    "SimulatedOfflineStage",
    "simulate_keygen",
    # Address helpers
    "address",
    "verify_signature",
    # Exceptions
    "SignerError",
    "ConfigurationError",
    "ProtocolError",
    "MalformedMessageError",
    "OutOfRoundError",
    "DuplicateMessageError",
    "UnknownPartyError",
    "CombinationError",
    "SigningTimeoutError",
    "PreconditionError",
    "DigestSizeError",
    "OfflineStageIncompleteError",
    "PartialAlreadyIssuedError",
    "CompletedOfflineStageUnavailableError",
    "SessionStateError",
    "SessionFailedError",
    "SignatureVerificationError",
    # Schemas
    "ErrorCategory",
    "SessionState",
    "RoundEnvelope",
    "ProceedResult",
    "LocalKey",
    "PartialSignature",
    "SignatureRecid",
    "SignatureResult",
]
