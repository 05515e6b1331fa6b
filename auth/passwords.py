"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x+
rejects. Direct usage has no compatibility shim to go stale.

The cost factor is the security property here. hash() is deliberately slow
and CPU bound; callers impose their own request-level timeouts.
"""

from __future__ import annotations

from typing import Protocol

import bcrypt

# bcrypt only reads the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


class PasswordHasher(Protocol):
    def hash(self, plaintext: str) -> str:
        """Return a salted one-way digest suitable for storage."""
        ...

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Return True if plaintext matches password_hash. Never raises on mismatch."""
        ...


class BcryptPasswordHasher:
    """PasswordHasher backed by bcrypt.

    The salt and cost factor are embedded in every hash, so verify() works on
    hashes produced with any earlier `rounds` setting.
    """

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31.")
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        """Hash plaintext with a fresh random salt.

        Raises ValueError for passwords over 72 UTF-8 bytes instead of letting
        bcrypt truncate them silently.
        """
        raw = plaintext.encode("utf-8")
        if len(raw) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes.")
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        An unparseable stored hash or an over-long candidate is a mismatch,
        not an error. bcrypt.checkpw compares in constant time.
        """
        raw = plaintext.encode("utf-8")
        if len(raw) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(raw, password_hash.encode("utf-8"))
        except ValueError:
            return False
