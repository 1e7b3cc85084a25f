"""Round envelope schemas.

A round envelope wraps one engine message with the round number it was
produced in, so that messages from different rounds are never mixed and
out of order delivery can be detected by the receiving engine.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .common import PartyIndex, RoundNumber


class RoundEnvelope(BaseModel):
    """One protocol message tagged with round and routing metadata."""

    model_config = ConfigDict(frozen=True)

    round: RoundNumber = Field(..., description="Round the message was produced in")
    sender: PartyIndex = Field(..., description="Index of the sending party")
    receiver: Optional[PartyIndex] = Field(
        default=None, description="Index of the receiving party (None for broadcast)"
    )
    body: Dict[str, Any] = Field(..., description="Engine-specific message payload")

    @property
    def is_broadcast(self) -> bool:
        return self.receiver is None

    def is_for(self, index: int) -> bool:
        """Whether a party with ``index`` should receive this envelope."""
        if self.sender == index:
            return False
        return self.receiver is None or self.receiver == index


class ProceedResult(BaseModel):
    """Outcome of a single proceed() call."""

    advanced: bool = Field(..., description="Whether the engine moved to a new round")
    round: Optional[RoundNumber] = Field(
        default=None, description="Engine round after advancing"
    )
    messages: List[RoundEnvelope] = Field(
        default_factory=list, description="Envelopes to deliver to the other parties"
    )

    def __bool__(self) -> bool:
        return self.advanced

    def as_wire(self) -> Union[bool, List[Any]]:
        """Return ``False`` or ``[round, [envelope, ...]]`` in JSON-compatible form."""
        if not self.advanced:
            return False
        return [self.round, [m.model_dump(mode="json") for m in self.messages]]
