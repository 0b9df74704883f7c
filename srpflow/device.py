"""
Remembered-device sub-protocol.

A device is a second SRP identity: the device group key stands in for the pool
name, the device key for the username, and a random device password for the
user's password. Registration hands the service a salt and verifier
(v = g^x mod N); later logins answer DEVICE_PASSWORD_VERIFIER with a claim
computed by exactly the same SRP arithmetic as the user's password claim.

Persisting DeviceIdentity between logins is the caller's job.
"""

from __future__ import annotations

import base64
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from srpflow.bigint import from_unsigned_big_endian, to_signed_bytes
from srpflow.srp import (
    EphemeralKeyPair,
    compute_identity_hash,
    compute_password_claim,
    compute_verifier,
)

log = structlog.get_logger()

DEVICE_PASSWORD_ENTROPY = 40  # random bytes behind the base64 device password
DEVICE_SALT_SIZE = 16


@dataclass(frozen=True)
class DeviceIdentity:
    """A remembered device, as persisted by the caller."""

    device_key: str
    device_group_key: str
    device_password: str = field(repr=False)


@dataclass(frozen=True)
class DeviceSecretVerifier:
    """Salt and password verifier handed to the service at ConfirmDevice."""

    salt: bytes
    password_verifier: bytes

    def to_parameters(self) -> dict[str, str]:
        """DeviceSecretVerifierConfig request shape."""
        return {
            "PasswordVerifier": base64.b64encode(self.password_verifier).decode("ascii"),
            "Salt": base64.b64encode(self.salt).decode("ascii"),
        }


def get_device_key_hash(device_group_key: str, device_key: str, password: str) -> bytes:
    """H(deviceGroupKey || deviceKey || ":" || password)."""
    return compute_identity_hash(device_group_key, device_key, password)


def generate_device_password(randbytes: Callable[[int], bytes] = secrets.token_bytes) -> str:
    """Random device password: base64 of DEVICE_PASSWORD_ENTROPY bytes."""
    return base64.b64encode(randbytes(DEVICE_PASSWORD_ENTROPY)).decode("ascii")


def generate_device_salt(randbytes: Callable[[int], bytes] = secrets.token_bytes) -> bytes:
    """Random 16-byte salt whose first byte is in 1..127.

    Such a salt is its own padded encoding, so the bytes sent at registration
    and the SALT the service later echoes as hex hash identically.
    """
    salt = bytearray(randbytes(DEVICE_SALT_SIZE))
    salt[0] = salt[0] & 0x7F or 1
    return bytes(salt)


def compute_device_verifier(
    device_group_key: str,
    device_key: str,
    password: str,
    *,
    salt: bytes | None = None,
) -> DeviceSecretVerifier:
    """Compute the salt/verifier pair for a device password.

    Args:
        device_group_key: Device group key from NewDeviceMetadata.
        device_key: Device key from NewDeviceMetadata.
        password: Device password from generate_device_password().
        salt: Fixed salt; a random one is generated if omitted.

    Returns:
        DeviceSecretVerifier with the padded verifier bytes.
    """
    if salt is None:
        salt = generate_device_salt()
    v = compute_verifier(from_unsigned_big_endian(salt), device_group_key, device_key, password)
    return DeviceSecretVerifier(salt=salt, password_verifier=to_signed_bytes(v))


def register_device(
    device_key: str,
    device_group_key: str,
) -> tuple[DeviceIdentity, DeviceSecretVerifier]:
    """Create the device secret for a newly issued device key.

    Returns:
        Tuple of (identity to persist, verifier to send with ConfirmDevice).
    """
    password = generate_device_password()
    verifier = compute_device_verifier(device_group_key, device_key, password)
    log.info("device_registered", device_key=device_key)
    return DeviceIdentity(device_key, device_group_key, password), verifier


def confirm_device_parameters(
    access_token: str,
    identity: DeviceIdentity,
    verifier: DeviceSecretVerifier,
    device_name: str | None = None,
) -> dict[str, Any]:
    """ConfirmDevice request body for a registered device."""
    params: dict[str, Any] = {
        "AccessToken": access_token,
        "DeviceKey": identity.device_key,
        "DeviceSecretVerifierConfig": verifier.to_parameters(),
    }
    if device_name is not None:
        params["DeviceName"] = device_name
    return params


def compute_device_claim(
    device_key: str,
    device_group_key: str,
    device_password: str,
    key_pair: EphemeralKeyPair,
    salt_hex: str,
    srp_b_hex: str,
    secret_block_b64: str,
    timestamp: str,
) -> bytes:
    """Compute the PASSWORD_CLAIM_SIGNATURE for DEVICE_PASSWORD_VERIFIER.

    Same arithmetic as srp.compute_password_claim() with the device group key
    as pool name and the device key as username.
    """
    return compute_password_claim(
        device_key,
        device_password,
        device_group_key,
        key_pair,
        salt_hex,
        srp_b_hex,
        secret_block_b64,
        timestamp,
    )
