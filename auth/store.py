"""
auth/store.py -- Credential stores for Principal records.

Pattern: Repository + Data Mapper. SQLCredentialStore is the repository;
_row_to_principal is the mapper. Services never touch SQL directly.

Contract shared by every store (see CredentialStore):
  find_by_username(username) -> Principal | None
      "Not found" is a value, not an exception.
  upsert_if_absent(principal) -> bool
      Atomic insert-if-absent. True when this call created the row, False
      when the username was already taken. Two processes racing to seed the
      same principal end up with exactly one row and no error.

Security:
  All queries use bound parameters. No f-strings in SQL.

Failure policy:
  IntegrityError on insert is the expected "already exists" signal. Any other
  SQLAlchemy error means the store is unreachable or broken and is raised as
  CredentialStoreError -- callers must not mistake it for a rejected login.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import CredentialStoreError
from auth.models import Principal

_DEFAULT_DB_URL = "sqlite:///authgate.db"


class CredentialStore(Protocol):
    def find_by_username(self, username: str) -> Principal | None: ...

    def upsert_if_absent(self, principal: Principal) -> bool: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_principals = Table(
    "principals",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so logins can read while a seeder writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# SQL repository
# ---------------------------------------------------------------------------


class SQLCredentialStore:
    """SQLAlchemy Core repository for Principal records.

    Usage:
        store = SQLCredentialStore("sqlite:///authgate.db")
        store.upsert_if_absent(Principal("admin", hasher.hash("secret"), "admin"))
        principal = store.find_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise CredentialStoreError(f"Could not initialise credential store: {exc}") from exc

    def find_by_username(self, username: str) -> Principal | None:
        """Look up a principal by exact username (case-sensitive)."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_principals.select().where(_principals.c.username == username)).fetchone()
        except SQLAlchemyError as exc:
            raise CredentialStoreError("Credential store lookup failed.") from exc
        return _row_to_principal(row) if row is not None else None

    def upsert_if_absent(self, principal: Principal) -> bool:
        """Insert principal unless its username exists. Returns True if inserted.

        The UNIQUE constraint on username makes this atomic across processes:
        the loser of a concurrent insert gets IntegrityError, which is the
        "already present" answer rather than a failure.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _principals.insert().values(
                        username=principal.username,
                        password_hash=principal.password_hash,
                        role=principal.role,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError:
            return False
        except SQLAlchemyError as exc:
            raise CredentialStoreError("Credential store write failed.") from exc
        return True

    def count_principals(self, role: str | None = None) -> int:
        """Return the number of stored principals, optionally for one role."""
        query = select(func.count()).select_from(_principals)
        if role is not None:
            query = query.where(_principals.c.role == role)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(query).scalar()
        except SQLAlchemyError as exc:
            raise CredentialStoreError("Credential store count failed.") from exc
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------


class InMemoryCredentialStore:
    """Process-local store. A lock makes upsert_if_absent atomic across threads."""

    def __init__(self, principals: list[Principal] | None = None) -> None:
        self._lock = threading.Lock()
        self._by_username: dict[str, Principal] = {}
        for principal in principals or []:
            self.upsert_if_absent(principal)

    def find_by_username(self, username: str) -> Principal | None:
        with self._lock:
            return self._by_username.get(username)

    def upsert_if_absent(self, principal: Principal) -> bool:
        with self._lock:
            if principal.username in self._by_username:
                return False
            self._by_username[principal.username] = principal
            return True

    def count_principals(self, role: str | None = None) -> int:
        with self._lock:
            if role is None:
                return len(self._by_username)
            return sum(1 for p in self._by_username.values() if p.role == role)

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_principal(row) -> Principal:
    return Principal(
        username=row.username,
        password_hash=row.password_hash,
        role=row.role,
    )
