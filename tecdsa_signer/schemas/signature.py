"""Signature schemas."""

from __future__ import annotations

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field

from .common import HexBytes, HexInt, PartyIndex


class PartialSignature(BaseModel):
    """One party's contribution to the final signature."""

    model_config = ConfigDict(frozen=True)

    sender: PartyIndex = Field(..., description="Index of the party that produced it")
    value: HexInt = Field(..., description="Signature share s_i")


class SignatureRecid(BaseModel):
    """ECDSA signature with recovery id."""

    r: HexInt = Field(..., description="x coordinate of the nonce point mod n")
    s: HexInt = Field(..., description="Signature proof, normalized to the lower half")
    recid: int = Field(..., ge=0, le=3, description="Public key recovery id")

    def to_vrs(self) -> Tuple[int, int, int]:
        return self.recid, self.r, self.s

    def to_bytes(self) -> bytes:
        """65-byte ``r || s || v`` encoding with Ethereum ``v = recid + 27``."""
        return (
            self.r.to_bytes(32, "big")
            + self.s.to_bytes(32, "big")
            + bytes([self.recid + 27])
        )


class SignatureResult(BaseModel):
    """Verified signature produced by a signing session."""

    model_config = ConfigDict(populate_by_name=True)

    signature: SignatureRecid = Field(..., description="The generated ECDSA signature")
    public_key: HexBytes = Field(
        ...,
        alias="publicKey",
        description="Uncompressed public key (65 bytes, 0x04 prefix)",
    )
    address: str = Field(..., description="Address derived from the public key")
