"""
Session tokens and refresh.

A login produces exactly one SessionTokens value. Refreshing never edits it in
place: SessionTokens.refreshed() builds a complete new set from the
REFRESH_TOKEN_AUTH result, which the caller then swaps in.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from srpflow.config import DEFAULT_CLOCK_SKEW_SECONDS, ClientContext
from srpflow.errors import ProtocolViolation
from srpflow.messages import (
    PARAM_DEVICE_KEY,
    PARAM_REFRESH_TOKEN,
    PARAM_SECRET_HASH,
    AuthFlow,
    InitiateAuthRequest,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionTokens:
    """Tokens from an AuthenticationResult plus expiry bookkeeping."""

    id_token: str = field(repr=False)
    access_token: str = field(repr=False)
    refresh_token: str | None = field(repr=False)
    issued_at: datetime
    expires_in: int  # seconds
    token_type: str = "Bearer"

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_valid(
        self,
        now: datetime | None = None,
        *,
        clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS,
    ) -> bool:
        """True iff now < issued_at + expires_in - clock_skew_seconds.

        The default skew matches FlowConfig, so a token is reported expired
        two minutes before the service would reject it.
        """
        if now is None:
            now = _utcnow()
        return now < self.expires_at - timedelta(seconds=clock_skew_seconds)

    @classmethod
    def from_authentication_result(
        cls,
        result: Mapping[str, Any],
        *,
        issued_at: datetime | None = None,
    ) -> SessionTokens:
        """Build tokens from an AuthenticationResult.

        Args:
            result: AuthenticationResult mapping from the service.
            issued_at: Issue time, now (UTC) if omitted.

        Raises:
            ProtocolViolation: If IdToken, AccessToken or ExpiresIn is missing.
        """
        required = ("IdToken", "AccessToken", "ExpiresIn")
        missing = [key for key in required if result.get(key) in (None, "")]
        if missing:
            raise ProtocolViolation(f"AuthenticationResult missing {', '.join(missing)}")

        return cls(
            id_token=result["IdToken"],
            access_token=result["AccessToken"],
            refresh_token=result.get("RefreshToken"),
            issued_at=issued_at if issued_at is not None else _utcnow(),
            expires_in=int(result["ExpiresIn"]),
            token_type=result.get("TokenType") or "Bearer",
        )

    def refreshed(
        self,
        result: Mapping[str, Any],
        *,
        issued_at: datetime | None = None,
    ) -> SessionTokens:
        """Replacement token set from a REFRESH_TOKEN_AUTH result.

        The service does not reissue the refresh token on refresh; the new set
        carries the one that was used unless the result contains a new one.
        """
        tokens = SessionTokens.from_authentication_result(result, issued_at=issued_at)
        if tokens.refresh_token is None:
            tokens = SessionTokens(
                id_token=tokens.id_token,
                access_token=tokens.access_token,
                refresh_token=self.refresh_token,
                issued_at=tokens.issued_at,
                expires_in=tokens.expires_in,
                token_type=tokens.token_type,
            )
        return tokens


def build_refresh_request(
    tokens: SessionTokens,
    context: ClientContext,
    username: str,
    *,
    device_key: str | None = None,
) -> InitiateAuthRequest:
    """InitiateAuth(REFRESH_TOKEN_AUTH) for the current token set.

    Raises:
        ProtocolViolation: If the token set has no refresh token.
    """
    if not tokens.refresh_token:
        raise ProtocolViolation("Cannot refresh a session without a refresh token")

    params = {PARAM_REFRESH_TOKEN: tokens.refresh_token}
    secret_hash = context.secret_hash(username)
    if secret_hash is not None:
        params[PARAM_SECRET_HASH] = secret_hash
    if device_key is not None:
        params[PARAM_DEVICE_KEY] = device_key

    return InitiateAuthRequest(
        auth_flow=AuthFlow.REFRESH_TOKEN_AUTH,
        client_id=context.client_id,
        auth_parameters=params,
    )
