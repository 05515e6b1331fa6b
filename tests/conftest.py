"""
tests/conftest.py -- Shared test fixtures for authgate.

This module provides:
  - FakeClock: a Clock whose time only moves when a test says so
  - hasher: bcrypt at the minimum cost factor (rounds=4) so tests stay fast
  - key_provider / codec / token_service / authenticator / gateway: the auth
    stack wired by hand against an in-memory store
  - api_client: TestClient with a patched lifespan and an isolated SQLite DB

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.factory import build_gateway, build_seeder
from auth.keys import StaticKeyProvider
from auth.models import Principal
from auth.passwords import BcryptPasswordHasher
from auth.service import AuthenticationService, AuthGateway, TokenService
from auth.store import InMemoryCredentialStore, SQLCredentialStore
from auth.tokens import TokenCodec
from core.config import Settings

TEST_SIGNING_KEY = "test-signing-key-0123456789abcdef0123456789abcdef"


class FakeClock:
    """Deterministic Clock. Starts at a fixed UTC instant; advance() moves it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 15, 9, 30, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Unit fixtures -- the auth stack wired by hand
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> BcryptPasswordHasher:
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def signing_key() -> str:
    return TEST_SIGNING_KEY


@pytest.fixture
def key_provider(signing_key: str) -> StaticKeyProvider:
    return StaticKeyProvider(signing_key)


@pytest.fixture
def codec(key_provider: StaticKeyProvider) -> TokenCodec:
    return TokenCodec(key_provider)


@pytest.fixture
def admin(hasher: BcryptPasswordHasher) -> Principal:
    """The principal from the reference scenario: admin / Admin1 / admin."""
    return Principal(username="admin", password_hash=hasher.hash("Admin1"), role="admin")


@pytest.fixture
def memory_store(admin: Principal) -> InMemoryCredentialStore:
    return InMemoryCredentialStore([admin])


@pytest.fixture
def token_service(codec: TokenCodec, clock: FakeClock) -> TokenService:
    return TokenService(codec, clock, ttl=timedelta(hours=1))


@pytest.fixture
def authenticator(memory_store: InMemoryCredentialStore, hasher: BcryptPasswordHasher) -> AuthenticationService:
    return AuthenticationService(memory_store, hasher)


@pytest.fixture
def gateway(
    authenticator: AuthenticationService,
    token_service: TokenService,
    memory_store: InMemoryCredentialStore,
) -> AuthGateway:
    return AuthGateway(authenticator, token_service, memory_store)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    clock: FakeClock
    store: SQLCredentialStore
    settings: Settings


def _test_settings(db_suffix: str) -> Settings:
    return Settings(
        debug=True,
        secret_key=TEST_SIGNING_KEY,
        database_url=f"sqlite:///file:test_authgate_{db_suffix}?mode=memory&cache=shared&uri=true",
        bcrypt_rounds=4,
        token_ttl_seconds=3600,
        admin_username="admin",
        admin_password="Admin1",
        admin_role="admin",
    )


def _patch_lifespan(settings: Settings, store: SQLCredentialStore, clock: FakeClock):
    """Return an async context manager that replaces the real lifespan.

    Mirrors the real startup order (seed, then gateway) but against the test
    store and a FakeClock so tests can expire tokens without sleeping.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        hasher = BcryptPasswordHasher(rounds=settings.bcrypt_rounds)
        build_seeder(settings, store, hasher).ensure_admin_exists()
        app.state.store = store
        app.state.gateway = build_gateway(settings, store, hasher, clock=clock)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness around the real FastAPI app with isolated state.

    The rate limiter is disabled so tests can log in freely; the rate-limit
    test re-enables it locally.
    """
    settings = _test_settings(request.module.__name__.rsplit(".", 1)[-1])
    store = SQLCredentialStore(settings.database_url)
    clock = FakeClock()

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(settings, store, clock)
    limiter.enabled = False
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, clock=clock, store=store, settings=settings)

    limiter.enabled = True
    app.router.lifespan_context = original_lifespan
    store.close()
