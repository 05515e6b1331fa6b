"""
auth/keys.py -- Signing key providers for TokenCodec.

The HMAC key is supplied at process start by a KeyProvider and never appears
as a literal in source. There is exactly one key at a time; rotation is not
supported.

SettingsKeyProvider reads SECRET_KEY through core.config, which already
enforces the production policy (required outside DEBUG, >= 32 chars).
StaticKeyProvider wraps a key obtained elsewhere (secret store, tests).
"""

from __future__ import annotations

from typing import Protocol

from auth.errors import KeyUnavailableError
from core.config import Settings


class KeyProvider(Protocol):
    def current_signing_key(self) -> bytes:
        """Return the symmetric signing key. Raises KeyUnavailableError."""
        ...


class StaticKeyProvider:
    """Serve a key that was loaded once at boot."""

    def __init__(self, key: str | bytes) -> None:
        if isinstance(key, str):
            key = key.encode("utf-8")
        self._key = key

    def current_signing_key(self) -> bytes:
        if not self._key:
            raise KeyUnavailableError("Signing key is empty.")
        return self._key


class SettingsKeyProvider:
    """Serve Settings.secret_key as the signing key."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def current_signing_key(self) -> bytes:
        key = self._settings.secret_key
        if not key:
            raise KeyUnavailableError("SECRET_KEY is not configured.")
        return key.encode("utf-8")
