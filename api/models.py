"""
API request and response models for authgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TokenRequest(BaseModel):
    """Request body for POST /api/v1/auth/token.

    max_length on password keeps inputs well below bcrypt's 72-byte
    input limit for ASCII passwords; longer UTF-8 input is rejected by
    the hasher as a plain mismatch.
    """

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class ValidateRequest(BaseModel):
    """Request body for POST /api/v1/auth/validate."""

    username: str = Field(min_length=1, max_length=255)
    token: str = Field(min_length=1, max_length=4096)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """Successful login. expires_in is seconds from issuance."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: datetime


class ValidateResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool


class MeResponse(BaseModel):
    """Identity of the principal behind a bearer token."""

    model_config = ConfigDict(frozen=True)

    username: str
    role: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
