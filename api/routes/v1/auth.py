"""
api/routes/v1/auth.py -- Authentication and user management REST endpoints.

Routes:
  POST /api/v1/auth/login   -- password login; returns a bearer JWT
  GET  /api/v1/auth/me      -- identity carried by the presented token
  POST /api/v1/auth/users   -- create or replace a user (admin only)

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  validate_credentials() answers the same way for unknown users and wrong
  passwords; the route returns one generic "bad_credentials" error for both.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse, MeResponse, UserCreate, UserResponse
from auth.dependencies import get_current_principal, require_admin
from auth.models import Principal
from auth.tokens import create_access_token
from bootstrap import Stores
from core.config import Settings

logger = logging.getLogger("hris.api")

# Auth policy:
# - POST /api/v1/auth/login:  public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/me:     requires a valid token
# - POST /api/v1/auth/users:  requires role "admin"
router = APIRouter()


@limiter.limit(login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Exchange username and password for a signed access token."""
    stores: Stores = request.app.state.stores
    settings: Settings = request.app.state.settings
    valid, roles = stores.credentials.validate_credentials(body.username, body.password)
    if not valid:
        logger.info("Failed login for %r", body.username)
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = create_access_token(body.username, roles, settings.jwt_secret, settings.token_expire_seconds)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=settings.token_expire_seconds,
            username=body.username,
            roles=sorted(roles),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return the identity carried by the presented token."""
    return MeResponse(username=principal.username, roles=sorted(principal.roles))


@router.post("/auth/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    principal: Principal = Depends(require_admin),
) -> UserResponse:
    """Create a user, or replace the password and roles of an existing one."""
    stores: Stores = request.app.state.stores
    stores.credentials.create_user(body.username, body.password, body.roles)
    logger.info("User %r upserted by %r with roles %s", body.username, principal.username, body.roles)
    return UserResponse(username=body.username, roles=body.roles)
