"""
auth/bootstrap.py -- One-shot creation of the default administrative principal.

Runs once at process start, before any authentication traffic is accepted
(api/main.py lifespan, or `python main.py seed`). If it raises, startup
must abort.

Concurrency: two processes starting together may both see "no admin" and
both try to create it. Correctness relies on the store's atomic
upsert_if_absent() contract, not on any lock here -- the loser simply gets
False back and treats it as "already seeded" [M1].
"""

from __future__ import annotations

import logging

from auth.models import Principal
from auth.passwords import PasswordHasher
from auth.store import CredentialStore

logger = logging.getLogger("authgate.bootstrap")

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "Admin1"  # noqa: S105 # nosec B105 -- documented first-run default, override via ADMIN_PASSWORD
DEFAULT_ADMIN_ROLE = "admin"


class BootstrapSeeder:
    """Ensure a single administrative principal exists."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        username: str = DEFAULT_ADMIN_USERNAME,
        password: str = DEFAULT_ADMIN_PASSWORD,
        role: str = DEFAULT_ADMIN_ROLE,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self.username = username
        self._password = password
        self.role = role

    def ensure_admin_exists(self) -> bool:
        """Create the admin principal if absent. Returns True only if this call created it.

        Idempotent: a second call (or a concurrent call from another process)
        is a no-op and leaves exactly one row.
        """
        if self._store.find_by_username(self.username) is not None:
            return False

        principal = Principal(
            username=self.username,
            password_hash=self._hasher.hash(self._password),
            role=self.role,
        )
        if not self._store.upsert_if_absent(principal):
            logger.debug("Admin principal %r was created concurrently; nothing to do", self.username)
            return False

        logger.info("Default admin principal %r created", self.username)
        if self._password == DEFAULT_ADMIN_PASSWORD:
            logger.warning(
                "Admin principal %r uses the built-in default password. Set ADMIN_PASSWORD before first start.",
                self.username,
            )
        return True
