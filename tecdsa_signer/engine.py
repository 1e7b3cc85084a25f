"""Capability interface of the threshold-signing engine.

The coordinator never touches curve arithmetic, proofs or round transition
logic directly. It drives any engine that provides these capabilities:

- ``accept_incoming``: store one peer message for the round it belongs to
- ``ready_to_advance``: whether enough messages are buffered to move on
- ``advance``: move one round forward, returning outgoing messages
- ``current_round``: the round reached so far
- ``take_completed_output``: one-time read of the completed offline stage
- ``sign_manual``: bind a completed offline stage to a digest

Engines raise the exceptions in :mod:`tecdsa_signer.exceptions`; the
coordinator propagates them unchanged.
"""

from __future__ import annotations

from typing import Any, Dict, List, NamedTuple, Optional, Protocol, Sequence, Tuple

from .schemas import LocalKey, PartialSignature, RoundEnvelope, SignatureRecid


class OutgoingMessage(NamedTuple):
    """Message emitted by an engine before it is wrapped in an envelope."""

    receiver: Optional[int]
    body: Dict[str, Any]


class CompletedOfflineStage(Protocol):
    """Output of the offline stage, usable for exactly one digest."""

    @property
    def public_key(self) -> bytes:
        """Uncompressed joint public key."""
        ...


class ManualSigning(Protocol):
    """Local signing helper derived from a digest and a completed offline stage."""

    def complete(self, partials: Sequence[PartialSignature]) -> SignatureRecid:
        """Combine partial signatures into the final signature."""
        ...


class OfflineStage(Protocol):
    """Multi-round offline stage state machine."""

    def accept_incoming(self, envelope: RoundEnvelope) -> None:
        """Validate and buffer one peer message for the round it belongs to."""
        ...

    def ready_to_advance(self) -> bool:
        """Whether every message needed to leave the current round has arrived."""
        ...

    def advance(self) -> List[OutgoingMessage]:
        """Move one round forward and return the messages to send."""
        ...

    @property
    def current_round(self) -> int:
        """Round reached so far, 0 before the first advance."""
        ...

    @property
    def is_finished(self) -> bool:
        """Whether the offline stage has completed."""
        ...

    def take_completed_output(self) -> CompletedOfflineStage:
        """Hand over the completed offline stage. Only succeeds once."""
        ...

    def sign_manual(
        self, digest: int, completed: CompletedOfflineStage
    ) -> Tuple[ManualSigning, PartialSignature]:
        """Bind ``completed`` to ``digest``, returning the helper and local partial."""
        ...


class OfflineStageFactory(Protocol):
    """Callable building an engine for one party of a signing session."""

    def __call__(
        self, index: int, participants: List[int], local_key: LocalKey
    ) -> OfflineStage:
        ...
