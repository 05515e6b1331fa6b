"""
auth/service.py -- Authentication and token services.

AuthenticationService: (username, password) -> Authenticated | Rejected
TokenService:          principal -> token, (username, token) -> bool
AuthGateway:           the two calls the HTTP layer needs, composed

Every class takes its collaborators as constructor arguments; nothing here
reads settings or the system clock on its own. Instances hold no mutable
state after construction and can be shared across worker threads.

Failure policy:
  Expected failures (unknown user, wrong password, bad or expired token) are
  returned as typed outcomes and never raised. AuthInfrastructureError from
  the store or the key provider is fatal and propagates.

Security:
  [C1] Unknown usernames are verified against a dummy bcrypt hash so the
       response time does not reveal whether the account exists. The two
       rejection paths are only distinguishable in DEBUG logs.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from auth.clock import Clock
from auth.errors import InvalidSignatureError, MalformedTokenError
from auth.models import (
    Authenticated,
    AuthenticationOutcome,
    AuthFailure,
    Claims,
    Principal,
    Rejected,
    TokenCheck,
    TokenGrant,
)
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenCodec

logger = logging.getLogger("authgate.auth")

DEFAULT_TOKEN_TTL = timedelta(hours=1)

_DUMMY_PASSWORD = "authgate_timing_dummy"  # noqa: S105 # nosec B105 -- never stored


class AuthenticationService:
    """Verify a username/password pair against the credential store."""

    def __init__(self, store: CredentialStore, hasher: PasswordHasher) -> None:
        self._store = store
        self._hasher = hasher
        # Computed once so the first unknown-user attempt is not measurably
        # slower than later ones.
        self._dummy_hash = hasher.hash(_DUMMY_PASSWORD)

    def authenticate(self, username: str, password: str) -> AuthenticationOutcome:
        """Return Authenticated(principal) or Rejected(INVALID_CREDENTIALS).

        Always runs exactly one bcrypt verification, whether or not the
        username exists.
        """
        principal = self._store.find_by_username(username)
        if principal is None:
            self._hasher.verify(password, self._dummy_hash)
            logger.debug("Authentication rejected: unknown principal")
            return Rejected(AuthFailure.INVALID_CREDENTIALS)
        if not self._hasher.verify(password, principal.password_hash):
            logger.debug("Authentication rejected: password mismatch for %r", principal.username)
            return Rejected(AuthFailure.INVALID_CREDENTIALS)
        return Authenticated(principal)


class TokenService:
    """Issue tokens for authenticated principals and validate presented ones."""

    def __init__(self, codec: TokenCodec, clock: Clock, ttl: timedelta = DEFAULT_TOKEN_TTL) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Token TTL must be positive.")
        self._codec = codec
        self._clock = clock
        self.ttl = ttl

    def issue_grant(self, principal: Principal) -> TokenGrant:
        """Sign a token for principal valid from now until now + ttl."""
        issued_at = self._clock.now().replace(microsecond=0)
        expires_at = issued_at + self.ttl
        token = self._codec.sign(principal.username, issued_at, expires_at)
        return TokenGrant(access_token=token, issued_at=issued_at, expires_at=expires_at)

    def issue(self, principal: Principal) -> str:
        return self.issue_grant(principal).access_token

    def check(self, presented_username: str, token: str) -> TokenCheck:
        """Validate token for presented_username and say why it failed, if it did.

        A token is valid iff it parses, its signature verifies, its subject
        equals presented_username, and its expiry is strictly after now.
        """
        try:
            claims = self._codec.parse(token)
        except MalformedTokenError:
            return TokenCheck(valid=False, reason=AuthFailure.MALFORMED)
        except InvalidSignatureError:
            return TokenCheck(valid=False, reason=AuthFailure.INVALID_SIGNATURE)

        if claims.subject != presented_username:
            return TokenCheck(valid=False, reason=AuthFailure.SUBJECT_MISMATCH, claims=claims)
        if not claims.expires_at > self._clock.now():
            return TokenCheck(valid=False, reason=AuthFailure.EXPIRED, claims=claims)
        return TokenCheck(valid=True, claims=claims)

    def validate(self, presented_username: str, token: str) -> bool:
        """Return True iff token is valid for presented_username right now. Fails closed."""
        result = self.check(presented_username, token)
        if not result.valid:
            logger.debug("Token rejected: %s", result.reason.value)
        return result.valid

    def current_claims(self, token: str) -> Claims | None:
        """Return the claims of a correctly signed, unexpired token, or None.

        Parses and verifies the token once. For callers that learn the
        subject from the token itself, such as bearer authentication.
        """
        try:
            claims = self._codec.parse(token)
        except (MalformedTokenError, InvalidSignatureError):
            return None
        if not claims.expires_at > self._clock.now():
            return None
        return claims

    def subject_of(self, token: str) -> str | None:
        """Return the subject of a correctly signed token, or None.

        Expiry is not checked -- use validate() before trusting the subject.
        """
        try:
            return self._codec.parse(token).subject
        except (MalformedTokenError, InvalidSignatureError):
            return None


class AuthGateway:
    """The interface the HTTP layer and CLI call into.

    authenticate_and_issue_token() collapses every credential failure into a
    single Rejected(INVALID_CREDENTIALS) so no caller can distinguish an
    unknown user from a wrong password.
    """

    def __init__(
        self,
        authenticator: AuthenticationService,
        tokens: TokenService,
        store: CredentialStore,
    ) -> None:
        self.authenticator = authenticator
        self.tokens = tokens
        self._store = store

    def authenticate_and_issue_token(self, username: str, password: str) -> TokenGrant | Rejected:
        outcome = self.authenticator.authenticate(username, password)
        if isinstance(outcome, Rejected):
            logger.info("Login rejected")
            return outcome
        grant = self.tokens.issue_grant(outcome.principal)
        logger.info("Token issued for %r (expires %s)", outcome.principal.username, grant.expires_at.isoformat())
        return grant

    def validate_token(self, username: str, token: str) -> bool:
        return self.tokens.validate(username, token)

    def principal_for_token(self, token: str) -> Principal | None:
        """Resolve a bearer token to its stored principal, or None if invalid."""
        claims = self.tokens.current_claims(token)
        if claims is None:
            return None
        return self._store.find_by_username(claims.subject)
