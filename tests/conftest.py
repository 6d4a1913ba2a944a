"""
tests/conftest.py -- Shared test fixtures for VaultPro identity tests.

This module provides:
  - CapturingSender / FailingSender: OTP senders for the local provider
  - _make_lifecycle(): an identity stack on an isolated in-memory database
  - _patch_lifespan(): wires a test stack into app.state, bypassing real startup
  - lifecycle / sender: the stack and its captured emails, for unit tests
  - failing_lifecycle: a stack whose OTP delivery always fails
  - api_client: (client, lifecycle, sender) for HTTP integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool, and because the
credential store and the local provider use separate engines on the same
database. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.
Each fixture gets a fresh uuid-suffixed name so tests never share rows.

The DEBUG env var must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.factory import build_lifecycle, close_lifecycle
from auth.lifecycle import AccountLifecycleManager
from auth.mailer import OtpDeliveryError
from core.config import get_settings

# Rate limits are exercised explicitly in test_api_auth_routes.py; everywhere
# else they would make results depend on test order.
limiter.enabled = False


# ---------------------------------------------------------------------------
# OTP senders
# ---------------------------------------------------------------------------


class CapturingSender:
    """Records every OTP instead of emailing it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send(self, email: str, code: str, expire_seconds: int) -> None:
        self.sent.append((email, code))

    def last_code(self, email: str) -> str:
        codes = [code for to, code in self.sent if to == email]
        assert codes, f"no OTP was sent to {email}"
        return codes[-1]

    def count(self, email: str) -> int:
        return sum(1 for to, _ in self.sent if to == email)


class FailingSender:
    def send(self, email: str, code: str, expire_seconds: int) -> None:
        raise OtpDeliveryError("mail relay down")


# ---------------------------------------------------------------------------
# Stack helpers
# ---------------------------------------------------------------------------


def _memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _make_lifecycle(sender=None) -> AccountLifecycleManager:
    """Local-backend identity stack on a fresh named in-memory database."""
    return build_lifecycle(get_settings(), db_url=_memory_url("test_identity"), sender=sender or CapturingSender())


def _patch_lifespan(lifecycle: AccountLifecycleManager):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.lifecycle = lifecycle
        app.state.backend = "local"
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sender() -> CapturingSender:
    return CapturingSender()


@pytest.fixture
def lifecycle(sender: CapturingSender) -> Generator[AccountLifecycleManager, None, None]:
    stack = _make_lifecycle(sender)
    yield stack
    close_lifecycle(stack)


@pytest.fixture
def failing_lifecycle() -> Generator[AccountLifecycleManager, None, None]:
    """Identity stack whose OTP emails can never be delivered."""
    stack = _make_lifecycle(FailingSender())
    yield stack
    close_lifecycle(stack)


@pytest.fixture
def api_client(
    lifecycle: AccountLifecycleManager, sender: CapturingSender
) -> Generator[tuple[TestClient, AccountLifecycleManager, CapturingSender], None, None]:
    """Yield (client, lifecycle, sender) for HTTP integration tests.

    base_url is https://localhost: the session cookie is Secure, so httpx only
    sends it back over https, and localhost passes TrustedHostMiddleware.
    follow_redirects=False so tests can assert on redirect Location headers.
    """
    app.router.lifespan_context = _patch_lifespan(lifecycle)
    with TestClient(
        app,
        base_url="https://localhost",
        follow_redirects=False,
        raise_server_exceptions=True,
    ) as client:
        yield client, lifecycle, sender
