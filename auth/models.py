"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond membership
checks). Stores and dependencies do the work.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Credential:
    """A stored login: username, bcrypt hash, and role list.

    password_hash never leaves the store layer -- routes only ever see the
    (valid, roles) answer from validate_credentials().
    """

    username: str
    password_hash: str
    roles: list[str] = field(default_factory=list)
    created_at: str | None = None


@dataclass(frozen=True)
class Principal:
    """The verified identity behind a request, built from token claims.

    roles is already normalized to a set of strings (see auth.tokens.normalize_roles),
    whatever shape the token carried.
    """

    username: str
    roles: frozenset[str] = frozenset()

    def has_role(self, role: str) -> bool:
        return role in self.roles
