"""
auth/factory.py -- Composition root for the auth stack.

Turns a Settings object and a credential store into ready-to-use
components. api/main.py (lifespan) and main.py (CLI) both build through
here so the two entry points cannot drift apart. Tests usually construct
the classes directly with fakes instead.

Nothing is cached at module level: each call returns fresh objects.
"""

from __future__ import annotations

from datetime import timedelta

from auth.bootstrap import BootstrapSeeder
from auth.clock import Clock, SystemClock
from auth.keys import SettingsKeyProvider
from auth.passwords import BcryptPasswordHasher, PasswordHasher
from auth.service import AuthenticationService, AuthGateway, TokenService
from auth.store import CredentialStore
from auth.tokens import TokenCodec
from core.config import Settings


def build_hasher(settings: Settings) -> BcryptPasswordHasher:
    return BcryptPasswordHasher(rounds=settings.bcrypt_rounds)


def build_seeder(settings: Settings, store: CredentialStore, hasher: PasswordHasher) -> BootstrapSeeder:
    return BootstrapSeeder(
        store,
        hasher,
        username=settings.admin_username,
        password=settings.admin_password,
        role=settings.admin_role,
    )


def build_gateway(
    settings: Settings,
    store: CredentialStore,
    hasher: PasswordHasher,
    clock: Clock | None = None,
) -> AuthGateway:
    """Wire AuthenticationService and TokenService behind an AuthGateway."""
    codec = TokenCodec(SettingsKeyProvider(settings))
    tokens = TokenService(
        codec,
        clock or SystemClock(),
        ttl=timedelta(seconds=settings.token_ttl_seconds),
    )
    return AuthGateway(AuthenticationService(store, hasher), tokens, store)
