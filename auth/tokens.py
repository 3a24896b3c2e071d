"""
auth/tokens.py -- JWT issue/verify and role-claim normalization.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (username), roles, and exp.
       Nothing is persisted; a token is valid until it expires.

  Algorithm pinning: the header's declared 'alg' must equal HS256 before the
       signature is even looked at. Tokens declaring RS256, HS512, 'none', or
       anything else are rejected outright, so a verifier can never be talked
       into trusting the algorithm named by the token itself. jwt.decode() is
       then also called with algorithms=[HS256].

  Secret: passed in explicitly by the caller (Settings.jwt_secret via
       app.state.settings). This module reads no configuration of its own.

Layer rule: no imports from api/ or records/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from auth.models import Principal
from core.errors import Unauthorized

logger = logging.getLogger("hris.auth")

ALGORITHM = "HS256"
DEFAULT_EXPIRE_SECONDS = 3600


def create_access_token(
    username: str,
    roles: Iterable[str],
    secret_key: str,
    expire_seconds: int = DEFAULT_EXPIRE_SECONDS,
) -> str:
    """Encode a signed JWT carrying identity, roles, and expiry."""
    expire = datetime.now(timezone.utc) + timedelta(seconds=expire_seconds)
    payload = {
        "sub": username,
        "roles": sorted(set(roles)),
        "exp": expire,
    }
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str, secret_key: str) -> dict[str, Any]:
    """Verify a JWT and return its claims, or raise Unauthorized("invalid token").

    Rejects: malformed tokens, a header alg other than HS256, bad signatures,
    expired tokens, and tokens missing sub or exp.
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise Unauthorized("invalid token", detail="malformed token") from exc
    if header.get("alg") != ALGORITHM:
        logger.info("Rejected token with unexpected signing algorithm %r", header.get("alg"))
        raise Unauthorized("invalid token", detail="unexpected signing algorithm")
    try:
        return jwt.decode(
            token,
            secret_key,
            algorithms=[ALGORITHM],
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as exc:
        raise Unauthorized("invalid token") from exc


def normalize_roles(claim: Any) -> frozenset[str]:
    """Collapse the roles claim to a set of strings.

    Accepted shapes: a single string, a list of strings, or a list of mixed
    values (non-strings are dropped). Anything else yields an empty set.
    """
    if isinstance(claim, str):
        return frozenset([claim])
    if isinstance(claim, (list, tuple)):
        return frozenset(r for r in claim if isinstance(r, str))
    return frozenset()


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    return Principal(username=str(claims["sub"]), roles=normalize_roles(claims.get("roles")))
