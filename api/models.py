"""
API request and response models for the HRIS REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
Employee and payroll bodies stay schema-on-read (plain JSON objects);
only the envelopes around them and the auth payloads are modeled here.

Separation of concerns: records/ owns document semantics; api/ models = API contract.
"""

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

# Usernames are trimmed; passwords are taken byte for byte, as the CLI stores them.
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


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

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: Username
    # bcrypt's 72-byte limit is enforced at hashing time.
    password: str = Field(min_length=1, max_length=64)


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    username: str
    roles: list[str]


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    roles: list[str]


class UserCreate(BaseModel):
    """Request body for POST /api/v1/auth/users (admin only)."""

    username: Username
    password: str = Field(min_length=1, max_length=64)
    roles: list[str] = Field(default_factory=list, max_length=20)


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    roles: list[str]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class EmployeePage(BaseModel):
    """Response for GET /api/v1/employees. total counts every filtered match."""

    model_config = ConfigDict(frozen=True)

    items: list[dict[str, Any]]
    total: int
    page: int
    per_page: int


class DocumentList(BaseModel):
    """Unpaginated list response, e.g. GET /api/v1/payroll/employee/{id}."""

    model_config = ConfigDict(frozen=True)

    items: list[dict[str, Any]]
    total: int
