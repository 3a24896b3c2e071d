"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Per-request decision, in order:
  no "Authorization: Bearer" header            -> 401 "missing token"
  malformed / bad signature / expired token    -> 401 "invalid token"
  header alg is not HS256                      -> 401 "invalid token"
  role required and absent from roles claim    -> 403 "forbidden"
  otherwise                                    -> the route runs with a Principal

get_current_principal() raises Unauthorized; require_role() wraps it and
raises Forbidden. api/main.py turns both into the JSON error envelope.

Layer rule: no imports from api/ or records/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import Principal
from auth.tokens import decode_access_token, principal_from_claims
from core.errors import Forbidden, Unauthorized


def bearer_token(request: Request) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' header, if any."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_principal(request: Request) -> Principal:
    """Require a valid token. Raises Unauthorized otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(get_current_principal)): ...
    """
    token = bearer_token(request)
    if token is None:
        raise Unauthorized("missing token")
    claims = decode_access_token(token, request.app.state.settings.jwt_secret)
    return principal_from_claims(claims)


def require_role(role: str) -> Callable[..., Principal]:
    """Build a dependency that admits only principals holding role.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        def route(principal: Principal = Depends(require_role("admin"))): ...
    """

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_role(role):
            raise Forbidden("forbidden", detail=f"role {role!r} required")
        return principal

    dependency.__name__ = f"require_role_{role}"
    return dependency


require_admin = require_role("admin")
