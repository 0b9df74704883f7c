"""
SRP-6a engine for the identity service's USER_SRP_AUTH flow.

Client side only. Given the server challenge (SRP_B, SALT, SECRET_BLOCK) and a
client-generated timestamp, this module derives the 16-byte password
authentication key and the 32-byte password claim signature.

Byte layouts are fixed by the service and are NOT negotiable:

    k   = H(pad(N) || pad(g))
    u   = H(pad(A) || pad(B))
    x   = H(pad(salt) || H(poolName || username || ":" || password))
    S   = ((B - k * g^x) mod N) ^ (a + u * x) mod N
    key = HKDF(salt=pad(u), ikm=pad(S), info="Caldera Derived Key", L=16)
    M   = HMAC(key, poolName || username || secretBlock || timestamp)

pad() is bigint.to_signed_bytes(). All strings are UTF-8.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from srpflow.bigint import (
    b64_to_bytes,
    from_unsigned_big_endian,
    from_unsigned_little_endian_hex,
    to_signed_bytes,
    true_mod,
)
from srpflow.errors import DegenerateExchange
from srpflow.hkdf import HkdfSha256, hmac_sha256, sha256

log = structlog.get_logger()

# =============================================================================
# Group Parameters
# =============================================================================

# RFC 3526 3072-bit MODP group
N_HEX = (
    "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD1"
    "29024E088A67CC74020BBEA63B139B22514A08798E3404DD"
    "EF9519B3CD3A431B302B0A6DF25F14374FE1356D6D51C245"
    "E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
    "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE45B3D"
    "C2007CB8A163BF0598DA48361C55D39A69163FA8FD24CF5F"
    "83655D23DCA3AD961C62F356208552BB9ED529077096966D"
    "670C354E4ABC9804F1746C08CA18217C32905E462E36CE3B"
    "E39E772C180E86039B2783A2EC07A28FB5C55DF06F4C52C9"
    "DE2BCBF6955817183995497CEA956AE515D2261898FA0510"
    "15728E5A8AAAC42DAD33170D04507A33A85521ABDF1CBA64"
    "ECFB850458DBEF0A8AEA71575D060C7DB3970F85A6E1E4C7"
    "ABF5AE8CDB0933D71E8C94E04A25619DCEE3D2261AD2EE6B"
    "F12FFA06D98A0864D87602733EC86A64521F2B18177B200C"
    "BBE117577A615D6C770988C0BAD946E208E24FA074E5AB31"
    "43DB5BFCE0FD108E4B82D120A93AD2CAFFFFFFFFFFFFFFFF"
)
N = from_unsigned_little_endian_hex(N_HEX)
G = 2
K = from_unsigned_big_endian(sha256(to_signed_bytes(N) + to_signed_bytes(G)))

# Protocol constants
DERIVED_KEY_INFO = b"Caldera Derived Key"
DERIVED_KEY_SIZE = 16
EPHEMERAL_KEY_SIZE = 128  # bytes of entropy in `a`
DEFAULT_KEYGEN_MAX_ATTEMPTS = 10

_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


# =============================================================================
# Ephemeral Key Pair
# =============================================================================


@dataclass(frozen=True)
class EphemeralKeyPair:
    """One-time SRP key pair: public A = g^a mod N and private exponent a."""

    public: int
    private: int = field(repr=False)

    @classmethod
    def from_private(cls, private: int) -> EphemeralKeyPair:
        """Build a key pair from a known exponent (test vectors, replays).

        Raises:
            DegenerateExchange: If g^a mod N is zero.
        """
        public = compute_public_value(private)
        if true_mod(public, N) == 0:
            raise DegenerateExchange("A mod N cannot be zero")
        return cls(public=public, private=private)

    @property
    def public_hex(self) -> str:
        """A as lowercase hex, the SRP_A request parameter."""
        return format(self.public, "x")


def compute_public_value(private: int) -> int:
    """A = g^a mod N."""
    return pow(G, private, N)


def create_ephemeral_key_pair(
    *,
    max_attempts: int = DEFAULT_KEYGEN_MAX_ATTEMPTS,
    randbytes: Callable[[int], bytes] = secrets.token_bytes,
) -> EphemeralKeyPair:
    """Generate a fresh ephemeral key pair.

    `a` is EPHEMERAL_KEY_SIZE bytes from a CSPRNG. A pair whose public value
    reduces to zero is discarded and regenerated, at most max_attempts times.

    Args:
        max_attempts: Regeneration budget (>= 1).
        randbytes: Entropy source, secrets.token_bytes by default.

    Returns:
        EphemeralKeyPair with A mod N != 0.

    Raises:
        DegenerateExchange: If every attempt produced A mod N == 0.
        ValueError: If max_attempts < 1.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        private = from_unsigned_big_endian(randbytes(EPHEMERAL_KEY_SIZE))
        public = compute_public_value(private)
        if true_mod(public, N) != 0:
            return EphemeralKeyPair(public=public, private=private)
        log.warning("degenerate_ephemeral_key", attempt=attempt, max_attempts=max_attempts)

    raise DegenerateExchange(
        f"Unable to generate a non-degenerate ephemeral key after {max_attempts} attempts"
    )


# =============================================================================
# Derived Values
# =============================================================================


def compute_u(public_a: int, public_b: int) -> int:
    """Scrambler u = H(pad(A) || pad(B)).

    Raises:
        DegenerateExchange: If u is zero.
    """
    u = from_unsigned_big_endian(sha256(to_signed_bytes(public_a) + to_signed_bytes(public_b)))
    if u == 0:
        raise DegenerateExchange("Hash of A and B cannot be zero")
    return u


def compute_identity_hash(pool_name: str, username: str, password: str) -> bytes:
    """H(poolName || username || ":" || password).

    For devices the pool name is the device group key and the username is the
    device key.
    """
    return sha256(f"{pool_name}{username}:{password}".encode())


def compute_x(salt: int, pool_name: str, username: str, password: str) -> int:
    """Private key x = H(pad(salt) || identity hash)."""
    identity_hash = compute_identity_hash(pool_name, username, password)
    return from_unsigned_big_endian(sha256(to_signed_bytes(salt) + identity_hash))


def compute_verifier(salt: int, pool_name: str, username: str, password: str) -> int:
    """Password verifier v = g^x mod N."""
    return pow(G, compute_x(salt, pool_name, username, password), N)


def compute_shared_secret(public_b: int, x: int, u: int, private_a: int) -> int:
    """User-side shared secret S = ((B - k*g^x) mod N)^(a + u*x) mod N."""
    base = true_mod(public_b - K * pow(G, x, N), N)
    return pow(base, private_a + u * x, N)


def derive_password_authentication_key(
    username: str,
    password: str,
    pool_name: str,
    key_pair: EphemeralKeyPair,
    public_b: int,
    salt: int,
) -> bytes:
    """Derive the 16-byte password authentication key.

    Args:
        username: USER_ID_FOR_SRP (or device key).
        password: Plaintext password (or device password).
        pool_name: Pool name (or device group key).
        key_pair: The key pair whose A was sent to the service.
        public_b: Server public value B.
        salt: Server salt.

    Returns:
        HKDF output, DERIVED_KEY_SIZE bytes.

    Raises:
        DegenerateExchange: If u is zero.
    """
    u = compute_u(key_pair.public, public_b)
    x = compute_x(salt, pool_name, username, password)
    s = compute_shared_secret(public_b, x, u, key_pair.private)

    hkdf = HkdfSha256(to_signed_bytes(u), to_signed_bytes(s))
    return hkdf.expand(DERIVED_KEY_INFO, DERIVED_KEY_SIZE)


def sign_claim(
    key: bytes,
    pool_name: str,
    username: str,
    secret_block: bytes,
    timestamp: str,
) -> bytes:
    """Claim signature HMAC(key, poolName || username || secretBlock || timestamp)."""
    message = pool_name.encode() + username.encode() + secret_block + timestamp.encode()
    return hmac_sha256(key, message)


def compute_password_claim(
    username: str,
    password: str,
    pool_name: str,
    key_pair: EphemeralKeyPair,
    salt_hex: str,
    srp_b_hex: str,
    secret_block_b64: str,
    timestamp: str,
) -> bytes:
    """Compute the PASSWORD_CLAIM_SIGNATURE for a PASSWORD_VERIFIER challenge.

    Deterministic for fixed inputs.

    Args:
        username: USER_ID_FOR_SRP from the challenge.
        password: Plaintext password.
        pool_name: Pool name (part of the pool id after "_").
        key_pair: The key pair whose A was sent in InitiateAuth.
        salt_hex: SALT challenge parameter.
        srp_b_hex: SRP_B challenge parameter.
        secret_block_b64: SECRET_BLOCK challenge parameter.
        timestamp: Value from format_timestamp(), echoed as TIMESTAMP.

    Returns:
        32-byte claim signature.

    Raises:
        InvalidEncoding: If salt, B, or the secret block are malformed.
        DegenerateExchange: If B mod N is zero or u is zero.
    """
    public_b = from_unsigned_little_endian_hex(srp_b_hex)
    if true_mod(public_b, N) == 0:
        raise DegenerateExchange("B mod N cannot be zero")
    salt = from_unsigned_little_endian_hex(salt_hex)
    secret_block = b64_to_bytes(secret_block_b64)

    key = derive_password_authentication_key(
        username, password, pool_name, key_pair, public_b, salt
    )
    return sign_claim(key, pool_name, username, secret_block, timestamp)


# =============================================================================
# Helpers
# =============================================================================


def format_timestamp(moment: datetime | None = None) -> str:
    """Format a TIMESTAMP challenge response value.

    Layout: "Thu Jun 15 07:00:00 UTC 2017". Day and month names are always
    English and the day of month is not zero-padded. The string is hashed
    into the claim, so it must match byte for byte.

    Args:
        moment: Time to format, now (UTC) if omitted. Naive values are
            taken to be UTC.
    """
    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)

    return (
        f"{_DAY_NAMES[moment.weekday()]} {_MONTH_NAMES[moment.month - 1]} "
        f"{moment.day} {moment:%H:%M:%S} UTC {moment.year}"
    )


def pool_name_from_pool_id(pool_id: str) -> str:
    """Strip the region prefix from a user pool id ("us-east-1_abc" -> "abc").

    Raises:
        ValueError: If the pool id has no "_" separator.
    """
    region, sep, name = pool_id.partition("_")
    if not sep or not region or not name:
        raise ValueError(f"Malformed user pool id: {pool_id!r}")
    return name
