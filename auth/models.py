"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; these types only carry shape between them.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AuthFailure(str, Enum):
    """Why an authentication or token check did not succeed.

    INVALID_CREDENTIALS deliberately covers both "no such user" and "wrong
    password" so callers cannot tell them apart.
    """

    INVALID_CREDENTIALS = "invalid_credentials"
    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    SUBJECT_MISMATCH = "subject_mismatch"


@dataclass(frozen=True)
class Principal:
    """A stored identity.

    username is the unique, immutable key. password_hash is the opaque output
    of a PasswordHasher and is never the plaintext. role is a single
    authorization label ("admin", "user", ...).
    """

    username: str
    password_hash: str
    role: str

    def __repr__(self) -> str:
        # Keep hashes out of logs and tracebacks.
        return f"Principal(username={self.username!r}, role={self.role!r})"


@dataclass(frozen=True)
class Claims:
    """Verified claims carried by a token. Datetimes are UTC, whole seconds."""

    subject: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class Authenticated:
    principal: Principal

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    reason: AuthFailure = AuthFailure.INVALID_CREDENTIALS

    @property
    def ok(self) -> bool:
        return False


AuthenticationOutcome = Authenticated | Rejected


@dataclass(frozen=True)
class TokenGrant:
    """A freshly issued token plus the metadata an API response needs."""

    access_token: str
    issued_at: datetime
    expires_at: datetime
    token_type: str = "bearer"  # noqa: S105 # nosec B105 -- OAuth token type, not a password

    @property
    def expires_in(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())


@dataclass(frozen=True)
class TokenCheck:
    """Detailed result of TokenService.check(). reason is None when valid."""

    valid: bool
    reason: AuthFailure | None = None
    claims: Claims | None = None
