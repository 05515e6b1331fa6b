"""
auth/errors.py -- Exception taxonomy for the auth package.

Two families, handled very differently by callers:

  TokenError: expected failures while reading a presented token. The token
      services catch these and turn them into a typed AuthFailure outcome.
      They never reach the HTTP layer.

  AuthInfrastructureError: the signing key or the credential store is not
      available. These are fatal for the current call and propagate to the
      caller, which turns them into a 503 (HTTP) or a non-zero exit (CLI).

Invalid credentials are not an exception at all -- AuthenticationService
returns a Rejected outcome instead.
"""

from __future__ import annotations


class TokenError(Exception):
    """Base class for problems with a presented token."""


class MalformedTokenError(TokenError):
    """The token does not have the expected header.claims.signature structure."""


class InvalidSignatureError(TokenError):
    """The token is well formed but its MAC or its algorithm is wrong."""


class AuthInfrastructureError(RuntimeError):
    """A collaborator the auth services depend on is unavailable."""


class KeyUnavailableError(AuthInfrastructureError):
    """No signing key could be obtained from the key provider."""


class CredentialStoreError(AuthInfrastructureError):
    """The credential store could not be read or written."""
