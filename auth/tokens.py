"""
auth/tokens.py -- Compact signed token codec (HS256 JWT).

Security design decisions:
  Format: header.claims.signature, each segment base64url without padding.
       Header is {"alg": "HS256", "typ": "JWT"}; claims are {"sub", "iat",
       "exp"} as integer epoch seconds. Signature is HMAC-SHA256 over the
       ASCII bytes of "header.claims". python-jose does the JWS work.

  Algorithm pinning: parse() refuses any header whose alg is not HS256
       before a MAC is even computed. "none" and asymmetric algorithms are
       therefore InvalidSignatureError, closing the downgrade hole where a
       verifier trusts the token's own choice of algorithm.

  Canonical signatures: base64 decoding ignores the spare low bits of the
       final character, so two different strings can decode to the same MAC.
       parse() re-encodes the signature and rejects anything non-canonical,
       which means every change to the signature segment is detected.

  Expiry: parse() only proves integrity. Whether the claims are still in
       date is TokenService's decision, made against its injected Clock.

  Key: fetched from the KeyProvider on every call. KeyUnavailableError is
       infrastructure failure and propagates unchanged.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone

from jose import jwt, jws
from jose.exceptions import JOSEError
from jose.utils import base64url_decode, base64url_encode

from auth.errors import InvalidSignatureError, MalformedTokenError
from auth.keys import KeyProvider
from auth.models import Claims

ALGORITHM = "HS256"

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _to_epoch(value: datetime) -> int:
    if value.tzinfo is None:
        raise ValueError("Token timestamps must be timezone-aware.")
    return int(value.timestamp())


def _from_epoch(value: object, name: str) -> datetime:
    # bool is an int subclass; true/false is not a timestamp.
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedTokenError(f"Claim '{name}' must be an integer timestamp.")
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedTokenError(f"Claim '{name}' is out of range.") from exc


class TokenCodec:
    """Sign and parse HS256 tokens with a key from a KeyProvider."""

    def __init__(self, key_provider: KeyProvider) -> None:
        self._key_provider = key_provider

    def sign(self, subject: str, issued_at: datetime, expires_at: datetime) -> str:
        """Encode and sign a claims set. Returns the compact token string."""
        claims = {
            "sub": subject,
            "iat": _to_epoch(issued_at),
            "exp": _to_epoch(expires_at),
        }
        return jwt.encode(claims, self._key_provider.current_signing_key(), algorithm=ALGORITHM)

    def parse(self, token: str) -> Claims:
        """Verify token integrity and return its claims.

        Raises:
            MalformedTokenError:   not three base64url segments of JSON, or
                                   the claims are missing / ill-typed.
            InvalidSignatureError: alg is not HS256, or the MAC does not match.
            KeyUnavailableError:   the key provider could not supply a key.
        """
        if not isinstance(token, str):
            raise MalformedTokenError("Token must be a string.")
        segments = token.split(".")
        if len(segments) != 3 or not all(_SEGMENT_RE.match(s) for s in segments):
            raise MalformedTokenError("Token must have three non-empty base64url segments.")

        try:
            header = jws.get_unverified_header(token)
        except JOSEError as exc:
            raise MalformedTokenError("Token segments are not valid base64url JSON.") from exc

        if header.get("alg") != ALGORITHM:
            raise InvalidSignatureError(f"Unexpected token algorithm {header.get('alg')!r}.")

        raw_signature = segments[2].encode("ascii")
        if base64url_encode(base64url_decode(raw_signature)) != raw_signature:
            raise MalformedTokenError("Signature segment is not canonical base64url.")

        key = self._key_provider.current_signing_key()
        try:
            payload = jws.verify(token, key, algorithms=[ALGORITHM])
        except JOSEError as exc:
            raise InvalidSignatureError("Token signature verification failed.") from exc

        try:
            body = json.loads(payload)
        except (UnicodeDecodeError, ValueError) as exc:
            raise MalformedTokenError("Token claims are not JSON.") from exc
        if not isinstance(body, dict):
            raise MalformedTokenError("Token claims must be a JSON object.")

        subject = body.get("sub")
        if not isinstance(subject, str) or not subject:
            raise MalformedTokenError("Claim 'sub' must be a non-empty string.")
        return Claims(
            subject=subject,
            issued_at=_from_epoch(body.get("iat"), "iat"),
            expires_at=_from_epoch(body.get("exp"), "exp"),
        )
