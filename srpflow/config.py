"""
Configuration for srpflow.

FlowConfig holds the engine's tunables and can be read from SRPFLOW_*
environment variables. ClientContext holds the identity service app client
settings a login is made against.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from srpflow.log import configure_logging, level_number
from srpflow.secret_hash import compute_secret_hash
from srpflow.srp import DEFAULT_KEYGEN_MAX_ATTEMPTS, pool_name_from_pool_id

ENV_KEYGEN_MAX_ATTEMPTS = "SRPFLOW_KEYGEN_MAX_ATTEMPTS"
ENV_MFA_MAX_ATTEMPTS = "SRPFLOW_MFA_MAX_ATTEMPTS"
ENV_CLOCK_SKEW_SECONDS = "SRPFLOW_CLOCK_SKEW_SECONDS"
ENV_LOG_LEVEL = "SRPFLOW_LOG_LEVEL"

# Tokens are treated as expired this long before their real expiry
DEFAULT_CLOCK_SKEW_SECONDS = 120


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    """Read an integer environment variable.

    Args:
        environ: Environment mapping.
        name: Variable name.
        default: Value used when the variable is unset or empty.

    Returns:
        The parsed integer.

    Raises:
        ValueError: If the variable is set but not an integer.
    """
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class FlowConfig:
    """Tunables for key generation, MFA retries and token expiry."""

    # Ephemeral key regeneration budget when A mod N == 0
    keygen_max_attempts: int = DEFAULT_KEYGEN_MAX_ATTEMPTS

    # Rejected MFA codes tolerated before the flow fails
    mfa_max_attempts: int = 3

    # Subtracted from token expiry by AuthenticationFlow.tokens_valid()
    clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS

    log_level: str = "info"

    def __post_init__(self) -> None:
        if self.keygen_max_attempts < 1:
            raise ValueError(f"keygen_max_attempts must be >= 1, got {self.keygen_max_attempts}")
        if self.mfa_max_attempts < 1:
            raise ValueError(f"mfa_max_attempts must be >= 1, got {self.mfa_max_attempts}")
        if self.clock_skew_seconds < 0:
            raise ValueError(f"clock_skew_seconds must be >= 0, got {self.clock_skew_seconds}")
        level_number(self.log_level)

    def apply_logging(self) -> None:
        """Configure structlog output filtered at log_level."""
        configure_logging(self.log_level)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FlowConfig:
        """Build a FlowConfig from SRPFLOW_* variables, defaulting unset ones.

        Args:
            environ: Environment mapping, os.environ if omitted.

        Raises:
            ValueError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            keygen_max_attempts=_env_int(
                env, ENV_KEYGEN_MAX_ATTEMPTS, defaults.keygen_max_attempts
            ),
            mfa_max_attempts=_env_int(env, ENV_MFA_MAX_ATTEMPTS, defaults.mfa_max_attempts),
            clock_skew_seconds=_env_int(
                env, ENV_CLOCK_SKEW_SECONDS, defaults.clock_skew_seconds
            ),
            log_level=env.get(ENV_LOG_LEVEL, "").strip() or defaults.log_level,
        )


@dataclass(frozen=True)
class ClientContext:
    """Identity service app client a login is made against."""

    pool_id: str
    client_id: str
    client_secret: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        pool_name_from_pool_id(self.pool_id)

    @property
    def pool_name(self) -> str:
        """Pool name hashed into x and the claim."""
        return pool_name_from_pool_id(self.pool_id)

    def secret_hash(self, username: str) -> str | None:
        """SECRET_HASH for username, or None when the client has no secret."""
        if self.client_secret is None:
            return None
        return compute_secret_hash(username, self.client_id, self.client_secret)
