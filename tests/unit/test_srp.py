"""
SRP engine tests.

Validates the password authentication key and claim against vectors captured
from a live user pool, the host/client exchange symmetry against the
reference host, ephemeral key generation and the TIMESTAMP format.
"""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from pathlib import Path

import json5
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lib.reference import K as REFERENCE_K
from lib.reference import (
    b64,
    compute_verifier,
    deterministic_bytes,
    expected_claim,
    host_authentication_key,
    host_key_pair,
    to_hex,
)
from srpflow import srp
from srpflow.bigint import from_unsigned_little_endian_hex
from srpflow.errors import DegenerateExchange, InvalidEncoding
from srpflow.srp import (
    EPHEMERAL_KEY_SIZE,
    G,
    K,
    N,
    N_HEX,
    EphemeralKeyPair,
    compute_password_claim,
    compute_u,
    create_ephemeral_key_pair,
    derive_password_authentication_key,
    format_timestamp,
    pool_name_from_pool_id,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="module")
def srp_vectors() -> dict:
    """Load SRP test vectors."""
    vectors_path = Path(__file__).parent.parent / "vectors" / "srp_vectors.json5"
    with open(vectors_path) as f:
        return json5.load(f)


@pytest.fixture(scope="module")
def vector_key_pair(srp_vectors: dict) -> EphemeralKeyPair:
    """Client key pair used when the vectors were captured."""
    return EphemeralKeyPair.from_private(int(srp_vectors["private_a_hex"], 16))


# =============================================================================
# Group Parameters
# =============================================================================


class TestGroupParameters:
    """N, g and k."""

    def test_modulus_size(self) -> None:
        assert N.bit_length() == 3072
        assert N % 2 == 1

    def test_modulus_parsed_unsigned(self) -> None:
        assert N == int(N_HEX, 16)

    def test_generator(self) -> None:
        assert G == 2

    def test_multiplier_matches_reference(self) -> None:
        assert K == REFERENCE_K


# =============================================================================
# Test Vector Validation
# =============================================================================


class TestSrpVectors:
    """Known-good values from a live user pool."""

    def test_password_claim(self, srp_vectors: dict, vector_key_pair: EphemeralKeyPair) -> None:
        identity = srp_vectors["identity"]
        vector = next(v for v in srp_vectors["vectors"] if v["name"] == "password_claim")

        claim = compute_password_claim(
            identity["username"],
            identity["password"],
            identity["pool_name"],
            vector_key_pair,
            vector["salt"],
            vector["srp_b"],
            vector["secret_block"],
            vector["timestamp"],
        )

        assert base64.b64encode(claim).decode() == vector["claim"]

    def test_password_authentication_key(
        self, srp_vectors: dict, vector_key_pair: EphemeralKeyPair
    ) -> None:
        identity = srp_vectors["identity"]
        vector = next(
            v for v in srp_vectors["vectors"] if v["name"] == "password_authentication_key"
        )

        key = derive_password_authentication_key(
            identity["username"],
            identity["password"],
            identity["pool_name"],
            vector_key_pair,
            from_unsigned_little_endian_hex(vector["srp_b"]),
            from_unsigned_little_endian_hex(vector["salt"]),
        )

        assert base64.b64encode(key).decode() == vector["key"]

    def test_claim_is_deterministic(
        self, srp_vectors: dict, vector_key_pair: EphemeralKeyPair
    ) -> None:
        identity = srp_vectors["identity"]
        vector = srp_vectors["vectors"][0]
        args = (
            identity["username"],
            identity["password"],
            identity["pool_name"],
            vector_key_pair,
            vector["salt"],
            vector["srp_b"],
            vector["secret_block"],
            vector["timestamp"],
        )
        assert compute_password_claim(*args) == compute_password_claim(*args)

    def test_wrong_password_changes_claim(
        self, srp_vectors: dict, vector_key_pair: EphemeralKeyPair
    ) -> None:
        identity = srp_vectors["identity"]
        vector = srp_vectors["vectors"][0]
        claim = compute_password_claim(
            identity["username"],
            "Password2!",
            identity["pool_name"],
            vector_key_pair,
            vector["salt"],
            vector["srp_b"],
            vector["secret_block"],
            vector["timestamp"],
        )
        assert base64.b64encode(claim).decode() != vector["claim"]


# =============================================================================
# Exchange Symmetry
# =============================================================================


class TestExchangeSymmetry:
    """Client and reference host derive the same key and claim."""

    @given(
        password=st.text(min_size=1, max_size=32),
        seed=st.integers(min_value=0, max_value=2**32),
    )
    @settings(max_examples=10, deadline=None)
    def test_shared_key_agrees(self, password: str, seed: int) -> None:
        pool_name, username = "Pj8nlkpKR", "user-id"
        salt = deterministic_bytes(f"salt:{seed}", 16)
        verifier = compute_verifier(salt, pool_name, username, password)
        host = host_key_pair(
            verifier, int.from_bytes(deterministic_bytes(f"b:{seed}", 128), "big")
        )
        client = EphemeralKeyPair.from_private(
            int.from_bytes(deterministic_bytes(f"a:{seed}", 128), "big")
        )

        client_key = derive_password_authentication_key(
            username, password, pool_name, client, host.public, int.from_bytes(salt, "big")
        )

        assert client_key == host_authentication_key(client.public, verifier, host)

    def test_claim_verifies_on_host(self) -> None:
        pool_name, username, password = "Pj8nlkpKR", "user-id", "Password1!"
        salt = deterministic_bytes("claim-salt", 16)
        verifier = compute_verifier(salt, pool_name, username, password)
        host = host_key_pair(verifier, int.from_bytes(deterministic_bytes("claim-b", 128), "big"))
        client = EphemeralKeyPair.from_private(
            int.from_bytes(deterministic_bytes("claim-a", 128), "big")
        )
        secret_block = deterministic_bytes("claim-block", 64)
        timestamp = "Mon Jan 1 00:00:00 UTC 2024"

        claim = compute_password_claim(
            username,
            password,
            pool_name,
            client,
            salt.hex(),
            to_hex(host.public),
            b64(secret_block),
            timestamp,
        )

        key = host_authentication_key(client.public, verifier, host)
        assert claim == expected_claim(key, pool_name, username, secret_block, timestamp)


# =============================================================================
# Degenerate Values and Malformed Input
# =============================================================================


class TestDegenerateValues:
    """Zero values are rejected before any key is derived."""

    def test_b_zero(self, vector_key_pair: EphemeralKeyPair) -> None:
        with pytest.raises(DegenerateExchange, match="B mod N"):
            compute_password_claim(
                "u", "p", "pool", vector_key_pair, "00", "00", "AAAA", "ts"
            )

    def test_b_equal_to_n(self, vector_key_pair: EphemeralKeyPair) -> None:
        with pytest.raises(DegenerateExchange):
            compute_password_claim(
                "u", "p", "pool", vector_key_pair, "00", N_HEX, "AAAA", "ts"
            )

    def test_u_zero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(srp, "sha256", lambda data: b"\x00" * 32)
        with pytest.raises(DegenerateExchange, match="cannot be zero"):
            compute_u(5, 7)

    def test_from_private_rejects_zero_public(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(srp, "compute_public_value", lambda private: N)
        with pytest.raises(DegenerateExchange):
            EphemeralKeyPair.from_private(3)

    @pytest.mark.parametrize(
        ("salt", "srp_b", "secret_block"),
        [
            ("abc", "0102", "AAAA"),
            ("00", "xyz0", "AAAA"),
            ("00", "0102", "!!!"),
        ],
    )
    def test_malformed_challenge(
        self, vector_key_pair: EphemeralKeyPair, salt: str, srp_b: str, secret_block: str
    ) -> None:
        with pytest.raises(InvalidEncoding):
            compute_password_claim(
                "u", "p", "pool", vector_key_pair, salt, srp_b, secret_block, "ts"
            )


# =============================================================================
# Ephemeral Key Generation
# =============================================================================


class TestEphemeralKeyPair:
    """create_ephemeral_key_pair."""

    def test_public_is_g_pow_a(self) -> None:
        pair = create_ephemeral_key_pair()
        assert pair.public == pow(G, pair.private, N)
        assert pair.public % N != 0

    def test_entropy_size(self) -> None:
        requested: list[int] = []

        def randbytes(n: int) -> bytes:
            requested.append(n)
            return b"\x05" * n

        pair = create_ephemeral_key_pair(randbytes=randbytes)

        assert requested == [EPHEMERAL_KEY_SIZE]
        assert pair.private == int.from_bytes(b"\x05" * EPHEMERAL_KEY_SIZE, "big")

    def test_fresh_pairs_differ(self) -> None:
        assert create_ephemeral_key_pair().private != create_ephemeral_key_pair().private

    def test_private_not_in_repr(self) -> None:
        pair = EphemeralKeyPair.from_private(12345)
        assert "12345" not in repr(pair)

    def test_public_hex(self) -> None:
        pair = EphemeralKeyPair.from_private(1)
        assert pair.public_hex == "2"

    def test_regenerates_after_degenerate(self, monkeypatch: pytest.MonkeyPatch) -> None:
        publics = iter([0, N, 42])
        monkeypatch.setattr(srp, "compute_public_value", lambda private: next(publics))

        pair = create_ephemeral_key_pair(max_attempts=3)

        assert pair.public == 42

    def test_exhaustion(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[int] = []

        def degenerate(private: int) -> int:
            calls.append(private)
            return 0

        monkeypatch.setattr(srp, "compute_public_value", degenerate)

        with pytest.raises(DegenerateExchange, match="after 4 attempts"):
            create_ephemeral_key_pair(max_attempts=4)
        assert len(calls) == 4

    def test_invalid_budget(self) -> None:
        with pytest.raises(ValueError):
            create_ephemeral_key_pair(max_attempts=0)


# =============================================================================
# Helpers
# =============================================================================


class TestTimestamp:
    """TIMESTAMP challenge response format."""

    def test_vector_time(self) -> None:
        moment = datetime(2017, 6, 15, 7, 0, 0, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "Thu Jun 15 07:00:00 UTC 2017"

    def test_day_not_zero_padded(self) -> None:
        moment = datetime(2024, 3, 5, 9, 4, 1, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "Tue Mar 5 09:04:01 UTC 2024"

    def test_converts_to_utc(self) -> None:
        offset = timezone(timedelta(hours=-5))
        moment = datetime(2017, 6, 15, 2, 0, 0, tzinfo=offset)
        assert format_timestamp(moment) == "Thu Jun 15 07:00:00 UTC 2017"

    def test_naive_is_utc(self) -> None:
        assert format_timestamp(datetime(2017, 6, 15, 7, 0, 0)) == "Thu Jun 15 07:00:00 UTC 2017"

    def test_default_is_now(self) -> None:
        assert format_timestamp().endswith(f"UTC {datetime.now(timezone.utc).year}")

    @given(st.datetimes(min_value=datetime(1970, 1, 1), max_value=datetime(9999, 1, 1)))
    def test_shape(self, moment: datetime) -> None:
        day, month, dom, clock, utc, year = format_timestamp(moment).split(" ")
        assert day in ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
        assert len(month) == 3
        assert dom == str(moment.day)
        assert len(clock) == 8
        assert utc == "UTC"
        assert year == str(moment.year)


class TestPoolName:
    """Pool name from pool id."""

    def test_strip_region(self) -> None:
        assert pool_name_from_pool_id("us-east-1_Pj8nlkpKR") == "Pj8nlkpKR"

    @pytest.mark.parametrize("pool_id", ["nounderscore", "_abc", "us-east-1_"])
    def test_malformed(self, pool_id: str) -> None:
        with pytest.raises(ValueError):
            pool_name_from_pool_id(pool_id)
