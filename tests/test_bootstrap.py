"""Unit tests for auth/bootstrap.py -- default admin seeding.

Covers:
- first call creates exactly one admin principal with a hashed password
- repeated calls are no-ops and leave exactly one row (SQL and in-memory)
- an existing admin is never overwritten
- concurrent seeders racing on one store create exactly one row
- creation is logged once; the built-in default password triggers a warning
- store failures propagate so startup aborts
"""

from __future__ import annotations

import logging
import threading

import pytest

from auth.bootstrap import DEFAULT_ADMIN_PASSWORD, BootstrapSeeder
from auth.errors import CredentialStoreError
from auth.models import Principal
from auth.service import AuthenticationService
from auth.store import InMemoryCredentialStore, SQLCredentialStore


@pytest.fixture(params=["sql", "memory"])
def empty_store(request):
    s = SQLCredentialStore("sqlite:///:memory:") if request.param == "sql" else InMemoryCredentialStore()
    yield s
    s.close()


def test_creates_admin_on_empty_store(empty_store, hasher):
    seeder = BootstrapSeeder(empty_store, hasher)
    assert seeder.ensure_admin_exists() is True

    admin = empty_store.find_by_username("admin")
    assert admin.role == "admin"
    assert admin.password_hash != DEFAULT_ADMIN_PASSWORD
    assert hasher.verify(DEFAULT_ADMIN_PASSWORD, admin.password_hash)


def test_seeded_admin_can_authenticate(empty_store, hasher):
    BootstrapSeeder(empty_store, hasher).ensure_admin_exists()
    outcome = AuthenticationService(empty_store, hasher).authenticate("admin", "Admin1")
    assert outcome.ok is True


def test_idempotent(empty_store, hasher):
    seeder = BootstrapSeeder(empty_store, hasher)
    assert seeder.ensure_admin_exists() is True
    assert seeder.ensure_admin_exists() is False
    assert empty_store.count_principals() == 1
    assert empty_store.count_principals(role="admin") == 1


def test_existing_admin_untouched(hasher):
    original = Principal("admin", hasher.hash("operator-chosen"), "admin")
    store = InMemoryCredentialStore([original])
    assert BootstrapSeeder(store, hasher).ensure_admin_exists() is False
    assert store.find_by_username("admin") == original


def test_custom_identity(empty_store, hasher):
    seeder = BootstrapSeeder(empty_store, hasher, username="root", password="s3cret-pass", role="superuser")
    seeder.ensure_admin_exists()
    root = empty_store.find_by_username("root")
    assert root.role == "superuser"
    assert hasher.verify("s3cret-pass", root.password_hash)
    assert empty_store.find_by_username("admin") is None


def test_concurrent_seeders_create_one_row(hasher):
    store = InMemoryCredentialStore()
    barrier = threading.Barrier(6)
    created: list[bool] = []

    def start_process() -> None:
        barrier.wait()
        created.append(BootstrapSeeder(store, hasher).ensure_admin_exists())

    threads = [threading.Thread(target=start_process) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert created.count(True) == 1
    assert store.count_principals() == 1


def test_lost_race_is_not_an_error(hasher):
    """find says absent, but another process inserts before our upsert lands."""

    class _RacingStore(InMemoryCredentialStore):
        def find_by_username(self, username):
            return None

    store = _RacingStore([Principal("admin", "winner-hash", "admin")])
    assert BootstrapSeeder(store, hasher).ensure_admin_exists() is False
    assert store.count_principals() == 1


def test_logs_creation_once(empty_store, hasher, caplog):
    seeder = BootstrapSeeder(empty_store, hasher, password="not-the-default")
    with caplog.at_level(logging.INFO, logger="authgate.bootstrap"):
        seeder.ensure_admin_exists()
        seeder.ensure_admin_exists()
    created = [r for r in caplog.records if "created" in r.getMessage()]
    assert len(created) == 1
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
    assert "not-the-default" not in caplog.text


def test_default_password_warns(empty_store, hasher, caplog):
    with caplog.at_level(logging.WARNING, logger="authgate.bootstrap"):
        BootstrapSeeder(empty_store, hasher).ensure_admin_exists()
    assert any("default password" in r.getMessage() for r in caplog.records)


def test_store_failure_propagates(hasher):
    class _DownStore:
        def find_by_username(self, username):
            raise CredentialStoreError("database is down")

        def upsert_if_absent(self, principal):
            raise CredentialStoreError("database is down")

    with pytest.raises(CredentialStoreError):
        BootstrapSeeder(_DownStore(), hasher).ensure_admin_exists()
