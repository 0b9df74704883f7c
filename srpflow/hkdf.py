"""
HKDF-SHA256 (RFC 5869).

The SRP engine feeds the raw shared secret S through Extract (salted with the
scrambler u) and Expand (with the service's fixed info label) to obtain the
16-byte password authentication key.

Each call builds its own HMAC and HKDFExpand contexts; nothing is cached
between calls.
"""

from __future__ import annotations

from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand

from srpflow.errors import LengthTooLarge

HASH_LEN = 32  # SHA-256 output size
MAX_OUTPUT_LENGTH = 255 * HASH_LEN


def hmac_sha256(key: bytes, data: bytes) -> bytes:
    """HMAC-SHA256 over data with a fresh context."""
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(data)
    return h.finalize()


def sha256(data: bytes) -> bytes:
    """SHA-256 digest with a fresh context."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize()


def hkdf_extract(salt: bytes, ikm: bytes) -> bytes:
    """HKDF-Extract.

    PRK = HMAC-SHA256(key=salt, data=IKM)

    If salt is empty, a zero-filled 32-byte key is used.

    Args:
        salt: Optional salt value (can be empty)
        ikm: Input keying material

    Returns:
        32-byte pseudorandom key (PRK)
    """
    if not salt:
        salt = b"\x00" * HASH_LEN
    return hmac_sha256(salt, ikm)


def hkdf_expand(prk: bytes, info: bytes, length: int) -> bytes:
    """HKDF-Expand over a PRK from hkdf_extract().

    Args:
        prk: Pseudorandom key from hkdf_extract()
        info: Context and application specific information
        length: Length of output keying material in bytes

    Returns:
        Derived key material of the requested length

    Raises:
        LengthTooLarge: If length exceeds 255 hash blocks.
        ValueError: If length is negative.
    """
    if length < 0:
        raise ValueError(f"HKDF-Expand: length must be non-negative, got {length}")
    if length > MAX_OUTPUT_LENGTH:
        raise LengthTooLarge(
            f"HKDF-Expand: requested length {length} exceeds {MAX_OUTPUT_LENGTH}"
        )

    if length == 0:
        return b""

    return HKDFExpand(algorithm=hashes.SHA256(), length=length, info=info).derive(prk)


class HkdfSha256:
    """Extract-then-expand HKDF bound to one (salt, IKM) pair.

    The PRK is computed once at construction and exposed for test vectors.
    """

    def __init__(self, salt: bytes, ikm: bytes) -> None:
        self.prk = hkdf_extract(salt, ikm)

    def expand(self, info: bytes, length: int) -> bytes:
        """Expand the bound PRK to `length` bytes."""
        return hkdf_expand(self.prk, info, length)


def hkdf(salt: bytes, ikm: bytes, info: bytes, length: int) -> bytes:
    """One-shot HKDF-SHA256."""
    return hkdf_expand(hkdf_extract(salt, ikm), info, length)
