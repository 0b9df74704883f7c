"""
Pytest configuration and fixtures for srpflow tests.

This module provides:
- structlog configuration for the test run (SRPFLOW_LOG_LEVEL, default debug)
- Deterministic key pair and clock fixtures for reproducible exchanges
- An in-process stub identity service and matching client context
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable
from datetime import datetime, timezone

import pytest

from lib.reference import deterministic_exponent
from lib.stub_service import StubIdentityService
from srpflow.config import ENV_LOG_LEVEL, ClientContext
from srpflow.log import configure_logging
from srpflow.srp import EphemeralKeyPair

# Fixed login time: Thu Jun 15 07:00:00 UTC 2017
FIXED_NOW = datetime(2017, 6, 15, 7, 0, 0, tzinfo=timezone.utc)

configure_logging(os.environ.get(ENV_LOG_LEVEL, "debug"))


# =============================================================================
# Deterministic inputs
# =============================================================================


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def key_pair_factory() -> Callable[[], EphemeralKeyPair]:
    """Deterministic stand-in for create_ephemeral_key_pair.

    Each call yields the next key pair of a fixed BLAKE2b-seeded sequence.
    """
    counter = itertools.count()

    def factory() -> EphemeralKeyPair:
        return EphemeralKeyPair.from_private(deterministic_exponent(f"client-a:{next(counter)}"))

    return factory


# =============================================================================
# Stub identity service
# =============================================================================


@pytest.fixture
def stub_service() -> StubIdentityService:
    """Stub service with one plain user, "alice"."""
    service = StubIdentityService()
    service.add_user("alice", "correct horse")
    return service


@pytest.fixture
def client_context(stub_service: StubIdentityService) -> ClientContext:
    """Client context matching stub_service (no client secret)."""
    return ClientContext(pool_id=stub_service.pool_id, client_id=stub_service.client_id)
