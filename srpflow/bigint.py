"""
Unsigned big-integer codec.

Every protocol value (N, g, A, B, u, S, salt) is an unsigned integer, but the
identity service hashes them in the minimal big-endian two's-complement form
of a signed big integer: a 0x00 byte is prepended whenever the most
significant bit of the first byte is set. That padding rule is part of the
wire contract and lives here, in to_signed_bytes(), rather than being an
accident of some signed integer type.
"""

from __future__ import annotations

import base64
import binascii

from srpflow.errors import InvalidEncoding

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


# =============================================================================
# Decoding
# =============================================================================


def hex_to_bytes(text: str) -> bytes:
    """Decode hex text strictly.

    Args:
        text: Hex string, two digits per byte, no separators.

    Returns:
        Decoded bytes.

    Raises:
        InvalidEncoding: If the length is odd or a character is not a hex digit.
    """
    if len(text) % 2 != 0:
        raise InvalidEncoding(f"Malformed hex string: odd length {len(text)}")
    bad = next((c for c in text if c not in _HEX_DIGITS), None)
    if bad is not None:
        raise InvalidEncoding(f"Malformed hex string: invalid character {bad!r}")
    return bytes.fromhex(text)


def b64_to_bytes(text: str) -> bytes:
    """Decode standard base64 text strictly.

    Raises:
        InvalidEncoding: If the text is not valid base64.
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncoding(f"Malformed base64 string: {e}") from e


def from_unsigned_big_endian(data: bytes) -> int:
    """Read bytes as an unsigned big-endian integer."""
    return int.from_bytes(data, "big")


def from_unsigned_little_endian_hex(text: str) -> int:
    """Parse a hex-encoded protocol value (SRP_B, SALT, N).

    The name follows the identity service SDK. The digits themselves are read
    most-significant first and always as an unsigned number, which is what
    the service sends and what the published claim vectors require.

    Args:
        text: Hex text as received from the service.

    Returns:
        Non-negative integer.

    Raises:
        InvalidEncoding: If text is not well-formed hex.
    """
    return from_unsigned_big_endian(hex_to_bytes(text))


# =============================================================================
# Encoding
# =============================================================================


def to_unsigned_bytes(value: int) -> bytes:
    """Encode a non-negative integer as minimal big-endian bytes.

    No sign padding is added; zero encodes as a single 0x00 byte.

    Raises:
        ValueError: If value is negative.
    """
    if value < 0:
        raise ValueError(f"Expected a non-negative integer, got {value}")
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")


def to_signed_bytes(value: int) -> bytes:
    """Encode a non-negative integer in its hashed wire form.

    Layout: minimal big-endian bytes, prefixed with 0x00 when the top bit of
    the first byte would otherwise be set.

    Raises:
        ValueError: If value is negative.
    """
    if value < 0:
        raise ValueError(f"Expected a non-negative integer, got {value}")
    # bit_length // 8 + 1 leaves room for the sign bit exactly when needed
    return value.to_bytes(value.bit_length() // 8 + 1, "big")


def strip_sign_padding(data: bytes) -> bytes:
    """Drop a single 0x00 sign byte added by to_signed_bytes()."""
    if len(data) > 1 and data[0] == 0 and data[1] & 0x80:
        return data[1:]
    return data


# =============================================================================
# Arithmetic
# =============================================================================


def true_mod(value: int, modulus: int) -> int:
    """Reduce value into [0, modulus).

    B - k*g^x is frequently negative before reduction; the result here is
    never negative.

    Raises:
        ValueError: If modulus is not positive.
    """
    if modulus <= 0:
        raise ValueError(f"Modulus must be positive, got {modulus}")
    return value % modulus
