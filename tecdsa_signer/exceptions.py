"""Custom exceptions for the threshold-ECDSA signing coordinator."""

from __future__ import annotations

from typing import Any

from .schemas.enums import ErrorCategory


class SignerError(Exception):
    """Base exception for signing session errors."""

    category: ErrorCategory = ErrorCategory.PROTOCOL

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


# Configuration errors: raised while constructing a session.


class ConfigurationError(SignerError):
    """Malformed or inconsistent construction inputs."""

    category = ErrorCategory.CONFIGURATION


# Protocol errors: fatal to the session.


class ProtocolError(SignerError):
    """Protocol-level failure reported by the engine."""

    category = ErrorCategory.PROTOCOL


class MalformedMessageError(ProtocolError):
    """Message body could not be decoded for its round."""

    pass


class OutOfRoundError(ProtocolError):
    """Message belongs to a round the engine is not collecting."""

    pass


class DuplicateMessageError(ProtocolError):
    """Message for this round and sender was already processed."""

    pass


class UnknownPartyError(ProtocolError):
    """Sender or receiver is not a party of this session."""

    pass


class CombinationError(ProtocolError):
    """Partial signatures could not be combined."""

    pass


class SigningTimeoutError(ProtocolError):
    """A party waited too long for a peer message."""

    pass


# Precondition errors: operation called at the wrong point of the lifecycle.


class PreconditionError(SignerError):
    """Operation called before its precondition holds."""

    category = ErrorCategory.PRECONDITION


class DigestSizeError(PreconditionError):
    """Message digest is not exactly 32 bytes."""

    pass


class OfflineStageIncompleteError(PreconditionError):
    """Offline stage has not produced its output yet."""

    pass


class PartialAlreadyIssuedError(PreconditionError):
    """The completed offline stage was already bound to a digest."""

    pass


class CompletedOfflineStageUnavailableError(PreconditionError):
    """No cached completed offline stage for create()."""

    pass


class SessionStateError(PreconditionError):
    """Operation is not allowed in the current session state."""

    pass


class SessionFailedError(SessionStateError):
    """Session already failed and must be discarded."""

    pass


# Verification errors.


class SignatureVerificationError(SignerError):
    """Combined signature does not verify against the public key."""

    category = ErrorCategory.VERIFICATION
