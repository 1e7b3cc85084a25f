"""Signing session coordinator.

Drives one party's threshold-signing engine through the offline stage,
binds the completed offline stage to a message digest and assembles the
final, verified signature.
"""

import logging
from typing import Any, Callable, Optional, Sequence, Tuple, TypeVar

from .address import address, verify_signature
from .engine import CompletedOfflineStage, OfflineStage, OfflineStageFactory
from .exceptions import (
    CompletedOfflineStageUnavailableError,
    ConfigurationError,
    DigestSizeError,
    PartialAlreadyIssuedError,
    PreconditionError,
    SessionFailedError,
    SessionStateError,
    SignerError,
)
from .schemas import (
    LocalKey,
    PartialSignature,
    ProceedResult,
    RoundEnvelope,
    SessionState,
    SignatureResult,
)
from .simulation import SimulatedOfflineStage

logger = logging.getLogger(__name__)

ERR_COMPLETED_OFFLINE_STAGE = (
    "completed offline stage unavailable, has partial() been called?"
)

DIGEST_SIZE = 32

T = TypeVar("T")


class SigningSession:
    """
    Coordinator for one party of a threshold-ECDSA signing session.

    Lifecycle:
    - CONSTRUCTED -> ROUND_EXCHANGE: handle_incoming() / proceed()
    - ROUND_EXCHANGE -> OFFLINE_READY: proceed() reaches the final round
    - OFFLINE_READY -> PARTIAL_ISSUED: partial()
    - PARTIAL_ISSUED -> SIGNATURE_COMPLETE: create()

    Protocol and verification errors move the session to FAILED; a failed
    session rejects every further operation and must be discarded.
    Precondition errors leave the state untouched.

    A session signs exactly one digest: the completed offline stage is
    consumed by partial(), and a new signature needs a new session.
    """

    def __init__(
        self,
        index: int,
        participants: Sequence[int],
        local_key: LocalKey,
        engine_factory: OfflineStageFactory = SimulatedOfflineStage,
    ):
        participants = list(participants)
        if not participants:
            raise ConfigurationError("participant list is empty")
        if len(set(participants)) != len(participants):
            raise ConfigurationError(
                "duplicate participant indices", {"participants": participants}
            )
        if index not in participants:
            raise ConfigurationError(
                f"party {index} is not in the participant list",
                {"participants": participants},
            )

        self.index = index
        self.participants: Tuple[int, ...] = tuple(participants)
        self._engine: OfflineStage = engine_factory(index, participants, local_key)
        self._completed: Optional[Tuple[CompletedOfflineStage, bytes]] = None
        self._state = SessionState.CONSTRUCTED

        logger.info(
            f"Signing session created for party {index}, participants {participants}"
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_round(self) -> int:
        return self._engine.current_round

    def _guard(self, operation: str, func: Callable[[], T]) -> T:
        """Run ``func``, failing the session on anything but a precondition error."""
        if self._state is SessionState.FAILED:
            raise SessionFailedError(
                f"cannot {operation}: session for party {self.index} has failed"
            )
        try:
            return func()
        except PreconditionError:
            raise
        except SignerError as e:
            self._state = SessionState.FAILED
            logger.warning(f"Party {self.index} session failed during {operation}: {e}")
            raise
        except Exception as e:
            self._state = SessionState.FAILED
            logger.warning(
                f"Party {self.index} session failed during {operation}: "
                f"{type(e).__name__}: {e}"
            )
            raise

    def handle_incoming(self, envelope: RoundEnvelope) -> None:
        """Feed one peer envelope into the engine."""

        def run() -> None:
            if self._state not in (
                SessionState.CONSTRUCTED,
                SessionState.ROUND_EXCHANGE,
            ):
                raise SessionStateError(
                    f"cannot handle incoming messages in state {self._state.value}"
                )
            self._engine.accept_incoming(envelope)
            self._state = SessionState.ROUND_EXCHANGE
            logger.debug(
                f"Party {self.index} handled round {envelope.round} message "
                f"from party {envelope.sender}"
            )

        self._guard("handle incoming message", run)

    def proceed(self) -> ProceedResult:
        """Advance the engine one round if it has everything it needs."""

        def run() -> ProceedResult:
            if self._state not in (
                SessionState.CONSTRUCTED,
                SessionState.ROUND_EXCHANGE,
            ):
                return ProceedResult(advanced=False)
            if not self._engine.ready_to_advance():
                return ProceedResult(advanced=False)

            outgoing = self._engine.advance()
            round_number = self._engine.current_round
            messages = [
                RoundEnvelope(
                    round=round_number,
                    sender=self.index,
                    receiver=m.receiver,
                    body=m.body,
                )
                for m in outgoing
            ]

            if self._engine.is_finished:
                self._state = SessionState.OFFLINE_READY
                logger.info(
                    f"Party {self.index} completed offline stage at round {round_number}"
                )
            else:
                self._state = SessionState.ROUND_EXCHANGE
                logger.debug(
                    f"Party {self.index} proceeded to round {round_number}, "
                    f"{len(messages)} outgoing messages"
                )
            return ProceedResult(advanced=True, round=round_number, messages=messages)

        return self._guard("proceed", run)

    def partial(self, digest: bytes) -> PartialSignature:
        """
        Take the completed offline stage and bind it to ``digest``.

        The completed offline stage is cached for create(). The returned
        partial signature must be sent to every other participant.
        """

        def run() -> PartialSignature:
            message = _digest_bytes(digest)
            if self._state in (
                SessionState.PARTIAL_ISSUED,
                SessionState.SIGNATURE_COMPLETE,
            ):
                raise PartialAlreadyIssuedError(
                    "partial signature already issued for this session"
                )

            completed = self._engine.take_completed_output()
            data = int.from_bytes(message, "big")
            _sign, partial = self._engine.sign_manual(data, completed)

            self._completed = (completed, message)
            self._state = SessionState.PARTIAL_ISSUED
            logger.info(f"Party {self.index} issued partial signature")
            return partial

        return self._guard("create partial signature", run)

    def create(self, partials: Sequence[PartialSignature]) -> SignatureResult:
        """Combine partial signatures, verify the result and derive the address."""

        def run() -> SignatureResult:
            if self._completed is None:
                raise CompletedOfflineStageUnavailableError(ERR_COMPLETED_OFFLINE_STAGE)
            completed, message = self._completed
            self._completed = None

            public_key = completed.public_key
            data = int.from_bytes(message, "big")
            sign, _partial = self._engine.sign_manual(data, completed)

            signature = sign.complete(list(partials))
            verify_signature(signature, public_key, message)

            result = SignatureResult(
                signature=signature,
                public_key=public_key,
                address=address(public_key),
            )
            self._state = SessionState.SIGNATURE_COMPLETE
            logger.info(f"Party {self.index} created signature for {result.address}")
            return result

        return self._guard("create signature", run)


def _digest_bytes(digest: Any) -> bytes:
    """Convert a digest to exactly 32 bytes."""
    if isinstance(digest, str):
        s = digest[2:] if digest.lower().startswith("0x") else digest
        try:
            digest = bytes.fromhex(s)
        except ValueError:
            raise DigestSizeError(f"digest is not valid hex: {digest!r}")
    elif isinstance(digest, (list, tuple, bytearray, memoryview)):
        try:
            digest = bytes(digest)
        except (TypeError, ValueError) as e:
            raise DigestSizeError("digest is not a byte sequence", str(e))
    if not isinstance(digest, bytes):
        raise DigestSizeError(f"digest must be bytes, got {type(digest).__name__}")
    if len(digest) != DIGEST_SIZE:
        raise DigestSizeError(
            f"digest must be exactly {DIGEST_SIZE} bytes, got {len(digest)}"
        )
    return digest
