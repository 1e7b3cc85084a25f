"""Common field types shared by the wire schemas."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator, Field, PlainSerializer

U16_MAX = 0xFFFF


def _parse_hex_int(value: Any) -> Any:
    """Accept ``0x``-prefixed hex strings as integers."""
    if isinstance(value, str):
        s = value.lower()
        if s.startswith("0x"):
            s = s[2:]
        try:
            return int(s, 16)
        except ValueError:
            raise ValueError(f"invalid hex integer: {value!r}")
    return value


def _parse_hex_bytes(value: Any) -> Any:
    """Accept ``0x`` hex strings and lists of byte values as bytes."""
    if isinstance(value, str):
        s = value[2:] if value.lower().startswith("0x") else value
        try:
            return bytes.fromhex(s)
        except ValueError:
            raise ValueError(f"invalid hex bytes: {value!r}")
    if isinstance(value, (list, tuple)):
        return bytes(value)
    return value


HexInt = Annotated[
    int,
    BeforeValidator(_parse_hex_int),
    PlainSerializer(lambda v: hex(v), return_type=str, when_used="json"),
]

HexBytes = Annotated[
    bytes,
    BeforeValidator(_parse_hex_bytes),
    PlainSerializer(lambda v: "0x" + v.hex(), return_type=str, when_used="json"),
]

PartyIndex = Annotated[int, Field(ge=1, le=U16_MAX)]
RoundNumber = Annotated[int, Field(ge=0, le=U16_MAX)]
