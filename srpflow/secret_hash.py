"""
SECRET_HASH computation for app clients configured with a client secret.
"""

from __future__ import annotations

import base64

from srpflow.hkdf import hmac_sha256


def compute_secret_hash(user_id: str, client_id: str, client_secret: str) -> str:
    """Compute the SECRET_HASH request parameter.

    SECRET_HASH = base64(HMAC-SHA256(key=client_secret, data=user_id || client_id))

    Args:
        user_id: Username the request is made for.
        client_id: App client id.
        client_secret: App client secret.

    Returns:
        Base64 text.
    """
    digest = hmac_sha256(client_secret.encode(), f"{user_id}{client_id}".encode())
    return base64.b64encode(digest).decode("ascii")
