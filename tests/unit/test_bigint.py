"""
Unsigned big-integer codec tests.

Covers the sign-padding rule used whenever an integer is hashed, strict hex and
base64 decoding, and non-negative modular reduction.
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from srpflow.bigint import (
    b64_to_bytes,
    from_unsigned_big_endian,
    from_unsigned_little_endian_hex,
    hex_to_bytes,
    strip_sign_padding,
    to_signed_bytes,
    to_unsigned_bytes,
    true_mod,
)
from srpflow.errors import InvalidEncoding, SrpFlowError

# =============================================================================
# Decoding
# =============================================================================


class TestHexDecoding:
    """Strict hex decoding."""

    def test_mixed_case(self) -> None:
        assert hex_to_bytes("00ffAb") == b"\x00\xff\xab"

    def test_empty(self) -> None:
        assert hex_to_bytes("") == b""

    def test_odd_length_rejected(self) -> None:
        with pytest.raises(InvalidEncoding, match="odd length"):
            hex_to_bytes("abc")

    @pytest.mark.parametrize("text", ["zz", "0g", "12 4", "0x12"])
    def test_non_hex_rejected(self, text: str) -> None:
        with pytest.raises(InvalidEncoding):
            hex_to_bytes(text)

    def test_invalid_encoding_is_value_error(self) -> None:
        """Callers catching ValueError or SrpFlowError both see it."""
        with pytest.raises(ValueError):
            hex_to_bytes("q0")
        with pytest.raises(SrpFlowError):
            hex_to_bytes("q0")


class TestProtocolHex:
    """Hex-encoded protocol values (SRP_B, SALT, N)."""

    def test_digits_read_most_significant_first(self) -> None:
        assert from_unsigned_little_endian_hex("0102") == 0x0102

    def test_high_bit_stays_unsigned(self) -> None:
        assert from_unsigned_little_endian_hex("ff") == 255
        assert from_unsigned_little_endian_hex("80000000") == 0x80000000

    def test_leading_zero_bytes(self) -> None:
        assert from_unsigned_little_endian_hex("000001") == 1

    def test_malformed(self) -> None:
        with pytest.raises(InvalidEncoding):
            from_unsigned_little_endian_hex("f")

    def test_big_endian_bytes(self) -> None:
        assert from_unsigned_big_endian(b"\x01\x00") == 256
        assert from_unsigned_big_endian(b"") == 0


class TestBase64Decoding:
    """Strict base64 decoding."""

    def test_valid(self) -> None:
        assert b64_to_bytes("AAEC") == b"\x00\x01\x02"

    @pytest.mark.parametrize("text", ["A", "AA=A", "not base64!", "AAE"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(InvalidEncoding):
            b64_to_bytes(text)


# =============================================================================
# Encoding
# =============================================================================


class TestSignedBytes:
    """Minimal two's-complement form of non-negative integers."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0, b"\x00"),
            (1, b"\x01"),
            (0x7F, b"\x7f"),
            (0x80, b"\x00\x80"),
            (0xFF, b"\x00\xff"),
            (0x0100, b"\x01\x00"),
            (0x7FFF, b"\x7f\xff"),
            (0x8000, b"\x00\x80\x00"),
        ],
    )
    def test_padding_rule(self, value: int, expected: bytes) -> None:
        assert to_signed_bytes(value) == expected

    def test_generator(self) -> None:
        assert to_signed_bytes(2) == b"\x02"

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            to_signed_bytes(-1)

    @given(st.integers(min_value=0, max_value=2**3100))
    def test_first_byte_never_negative(self, value: int) -> None:
        """Top bit of the leading byte is always clear."""
        encoded = to_signed_bytes(value)
        assert encoded[0] & 0x80 == 0
        assert from_unsigned_big_endian(encoded) == value

    @given(st.integers(min_value=1, max_value=2**3100))
    def test_padding_is_minimal(self, value: int) -> None:
        encoded = to_signed_bytes(value)
        if len(encoded) > 1:
            # a leading zero byte is only there to clear the sign bit
            assert encoded[0] != 0 or encoded[1] & 0x80


class TestUnsignedBytes:
    """Minimal big-endian bytes without sign padding."""

    def test_no_padding(self) -> None:
        assert to_unsigned_bytes(0x80) == b"\x80"

    def test_zero(self) -> None:
        assert to_unsigned_bytes(0) == b"\x00"

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            to_unsigned_bytes(-5)

    @given(st.integers(min_value=0, max_value=2**3100))
    def test_strip_sign_padding_matches(self, value: int) -> None:
        assert strip_sign_padding(to_signed_bytes(value)) == to_unsigned_bytes(value)

    def test_strip_keeps_unpadded(self) -> None:
        assert strip_sign_padding(b"\x00\x01") == b"\x00\x01"
        assert strip_sign_padding(b"\x00") == b"\x00"


# =============================================================================
# Arithmetic
# =============================================================================


class TestTrueMod:
    """Non-negative modular reduction."""

    def test_negative_dividend(self) -> None:
        assert true_mod(-1, 7) == 6
        assert true_mod(-14, 7) == 0

    def test_positive_dividend(self) -> None:
        assert true_mod(15, 7) == 1

    @given(st.integers(), st.integers(min_value=1, max_value=2**256))
    def test_range(self, value: int, modulus: int) -> None:
        result = true_mod(value, modulus)
        assert 0 <= result < modulus
        assert (value - result) % modulus == 0

    @pytest.mark.parametrize("modulus", [0, -7])
    def test_non_positive_modulus(self, modulus: int) -> None:
        with pytest.raises(ValueError):
            true_mod(3, modulus)
