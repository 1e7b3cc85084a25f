"""Local key share schema."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, model_validator

from .common import HexBytes, HexInt, PartyIndex


class LocalKey(BaseModel):
    """Key share held by one party after key generation.

    ``public_shares[j - 1]`` is the public share ``x_j * G`` of party ``j``,
    encoded as an uncompressed point. Any ``threshold + 1`` parties can sign.
    """

    index: PartyIndex = Field(..., description="Index of the party owning this share")
    threshold: int = Field(..., ge=0, description="Threshold t (t + 1 signers needed)")
    parties: int = Field(..., ge=1, description="Total number of key holders n")
    secret_share: HexInt = Field(
        ..., repr=False, description="Shamir share x_i of the private key"
    )
    public_key: HexBytes = Field(..., description="Uncompressed joint public key")
    public_shares: List[HexBytes] = Field(
        ..., description="Uncompressed public shares of every key holder"
    )

    @model_validator(mode="after")
    def check_dimensions(self):
        if self.threshold >= self.parties:
            raise ValueError(
                f"threshold t={self.threshold} must be lower than n={self.parties}"
            )
        if self.index > self.parties:
            raise ValueError(f"index {self.index} exceeds n={self.parties}")
        if len(self.public_shares) != self.parties:
            raise ValueError(
                f"expected {self.parties} public shares, got {len(self.public_shares)}"
            )
        return self
