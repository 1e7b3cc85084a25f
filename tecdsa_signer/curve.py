"""secp256k1 helpers built on the eth-keys native backend."""

from __future__ import annotations

import secrets
from typing import Iterable, List, Tuple

from eth_keys.backends.native.jacobian import fast_add, fast_multiply
from eth_keys.constants import SECPK1_G, SECPK1_N, SECPK1_P

Point = Tuple[int, int]

N = SECPK1_N
G: Point = SECPK1_G
INFINITY: Point = (0, 0)


def random_scalar() -> int:
    """Uniform non-zero scalar mod n."""
    return secrets.randbelow(N - 1) + 1


def inverse(x: int) -> int:
    return pow(x % N, N - 2, N)


def mul_base(k: int) -> Point:
    return fast_multiply(G, k % N)


def mul(point: Point, k: int) -> Point:
    return fast_multiply(point, k % N)


def add(*points: Point) -> Point:
    result = INFINITY
    for p in points:
        result = fast_add(result, p)
    return result


def is_on_curve(point: Point) -> bool:
    x, y = point
    if not (0 < x < SECPK1_P and 0 < y < SECPK1_P):
        return False
    return (y * y - x * x * x - 7) % SECPK1_P == 0


def encode_point(point: Point) -> bytes:
    """Uncompressed SEC1 encoding (65 bytes)."""
    x, y = point
    return b"\x04" + x.to_bytes(32, "big") + y.to_bytes(32, "big")


def decode_point(data: bytes) -> Point:
    """Decode an uncompressed point, rejecting points off the curve."""
    if len(data) == 64:
        data = b"\x04" + data
    if len(data) != 65 or data[0] != 4:
        raise ValueError(f"expected 65-byte uncompressed point, got {len(data)} bytes")
    point = (int.from_bytes(data[1:33], "big"), int.from_bytes(data[33:], "big"))
    if not is_on_curve(point):
        raise ValueError("point is not on secp256k1")
    return point


def lagrange_at_zero(index: int, indices: Iterable[int]) -> int:
    """Lagrange coefficient of ``index`` for interpolation at x = 0 (mod n)."""
    num, den = 1, 1
    for j in indices:
        if j == index:
            continue
        num = (num * (-j % N)) % N  # (0 - j)
        den = (den * ((index - j) % N)) % N  # (i - j)
    return (num * inverse(den)) % N


def shamir_split(secret: int, threshold: int, parties: int) -> List[Tuple[int, int]]:
    """Split ``secret`` into ``parties`` shares, any ``threshold + 1`` reconstruct."""
    coeffs = [secret % N] + [random_scalar() for _ in range(threshold)]
    shares = []
    for i in range(1, parties + 1):
        y = sum(c * pow(i, k, N) for k, c in enumerate(coeffs)) % N
        shares.append((i, y))
    return shares
