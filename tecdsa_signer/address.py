"""Address derivation and signature verification."""

import logging

from eth_keys import keys
from eth_keys.exceptions import BadSignature

from .config import get_settings
from .exceptions import SignatureVerificationError
from .schemas import SignatureRecid

logger = logging.getLogger(__name__)


def _public_key(public_key_bytes: bytes) -> keys.PublicKey:
    if len(public_key_bytes) == 65 and public_key_bytes[0] == 4:
        public_key_bytes = public_key_bytes[1:]
    return keys.PublicKey(public_key_bytes)


def address(public_key_bytes: bytes) -> str:
    """Ethereum address of an uncompressed public key."""
    public_key = _public_key(public_key_bytes)
    if get_settings().checksum_address:
        return public_key.to_checksum_address()
    return public_key.to_address()


def verify_signature(
    signature: SignatureRecid, public_key_bytes: bytes, digest: bytes
) -> None:
    """Verify ``signature`` over ``digest`` against the public key.

    Checks both the ECDSA equation and that the recovery id recovers the
    same public key.

    Raises:
        SignatureVerificationError: If the signature does not verify.
    """
    try:
        public_key = _public_key(public_key_bytes)
        sig = keys.Signature(vrs=signature.to_vrs())
    except Exception as e:
        raise SignatureVerificationError("failed to verify signature", str(e))

    if not public_key.verify_msg_hash(digest, sig):
        raise SignatureVerificationError(
            "failed to verify signature", "signature does not match public key"
        )

    try:
        recovered = sig.recover_public_key_from_msg_hash(digest)
    except BadSignature as e:
        raise SignatureVerificationError("failed to verify signature", str(e))
    if recovered != public_key:
        raise SignatureVerificationError(
            "failed to verify signature", "recovery id does not recover public key"
        )
    logger.debug(f"Signature verified for {public_key.to_checksum_address()}")
