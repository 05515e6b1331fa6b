"""
api/routes/v1/auth.py -- Token issuance and validation REST endpoints.

Routes:
  POST /api/v1/auth/token     -- password login; returns a bearer token
  POST /api/v1/auth/validate  -- check a (username, token) pair
  GET  /api/v1/auth/me        -- principal behind the bearer token (requires auth)

Security:
  [H2] POST /auth/token is rate-limited per client address (LOGIN_RATE_LIMIT).
  [C1] AuthGateway.authenticate_and_issue_token() equalizes timing between
       unknown users and wrong passwords -- never inline a store lookup here.
  [M5] Cache-Control: no-store on token responses.
  Every login failure returns the same body; the response never says whether
  the username exists.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ErrorDetail,
    ErrorResponse,
    MeResponse,
    TokenRequest,
    TokenResponse,
    ValidateRequest,
    ValidateResponse,
)
from auth.dependencies import get_current_principal
from auth.models import Principal, Rejected
from auth.service import AuthGateway
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/token:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/validate:  public -- the token itself is the credential
# - GET  /api/v1/auth/me:        requires bearer token (get_current_principal)
router = APIRouter()


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


def _bad_credentials() -> JSONResponse:
    resp = JSONResponse(
        status_code=401,
        content=ErrorResponse(
            error=ErrorDetail(code="bad_credentials", message="Invalid username or password.")
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/token", response_model=TokenResponse)
@limiter.limit(_login_rate_limit)  # [H2] innermost, so the registered endpoint is the throttled one
def issue_token(request: Request, body: TokenRequest) -> JSONResponse:
    """Authenticate with username and password; return a signed bearer token.

    Declared sync so bcrypt runs in the threadpool instead of blocking the
    event loop.
    """
    gateway: AuthGateway = request.app.state.gateway
    result = gateway.authenticate_and_issue_token(body.username, body.password)
    if isinstance(result, Rejected):
        return _bad_credentials()

    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(
            access_token=result.access_token,
            token_type=result.token_type,
            expires_in=result.expires_in,
            expires_at=result.expires_at,
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/validate", response_model=ValidateResponse)
def validate_token(request: Request, body: ValidateRequest) -> ValidateResponse:
    """Return whether token is currently valid for username. Always 200."""
    gateway: AuthGateway = request.app.state.gateway
    return ValidateResponse(valid=gateway.validate_token(body.username, body.token))


@router.get("/auth/me", response_model=MeResponse)
def me(principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return identity information for the bearer of the token."""
    return MeResponse(username=principal.username, role=principal.role)
