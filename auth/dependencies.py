"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer-token authentication.

Only the Authorization: Bearer <token> header is accepted. There is no cookie
or session path.

try_get_current_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: auth/dependencies.py may import from fastapi (for HTTPException /
Request) because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Principal
from auth.service import AuthGateway

_BEARER_PREFIX = "Bearer "


def try_get_current_principal(request: Request) -> Principal | None:
    """Resolve the bearer token on the request to a stored principal.

    Returns None when the header is missing, the token is invalid or expired,
    or the subject no longer exists. Never raises for those cases.
    """
    gateway: AuthGateway = request.app.state.gateway
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        return None
    token = auth_header[len(_BEARER_PREFIX) :].strip()
    if not token:
        return None
    return gateway.principal_for_token(token)


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_current_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal
