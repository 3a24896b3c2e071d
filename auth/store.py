"""
auth/store.py -- Credential stores: in-memory and SQLAlchemy Core.

Pattern: Repository + Data Mapper. CredentialStore is the contract;
InMemoryCredentialStore and SQLCredentialStore are interchangeable backends.
Route code never touches SQL or hashes directly.

Username enumeration:
  validate_credentials() answers (False, []) for an unknown username and for
  a wrong password alike, and runs bcrypt in both cases (against a dummy hash
  when the user does not exist) so response time does not tell them apart.
  Only a backend failure raises (StorageError).

Upsert:
  create_user() / create_user_with_hash() replace the hash and roles of an
  existing username. Re-seeding the administrator on every startup relies on
  this.

Security: all queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, MetaData, String, Table, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Credential
from auth.passwords import burn_dummy_check, hash_password, looks_like_bcrypt, verify_password
from core.errors import StorageError, ValidationError

logger = logging.getLogger("hris.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_credentials = Table(
    "credentials",
    _metadata,
    Column("username", String(255), primary_key=True),
    Column("password_hash", Text, nullable=False),
    Column("roles", Text, nullable=False, server_default="[]"),  # JSON array
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean_roles(roles) -> list[str]:
    """Deduplicate roles, keep first-seen order, drop blanks."""
    seen: dict[str, None] = {}
    for role in roles or []:
        if isinstance(role, str) and role.strip():
            seen.setdefault(role.strip(), None)
    return list(seen)


def _check_inputs(username: str, password_hash: str) -> None:
    if not username:
        raise ValidationError("username required")
    if not looks_like_bcrypt(password_hash):
        raise ValidationError("password hash must be a bcrypt hash")


def _check_password(candidate: Credential | None, password: str) -> tuple[bool, list[str]]:
    if candidate is None:
        burn_dummy_check(password)
        return False, []
    if not verify_password(password, candidate.password_hash):
        return False, []
    return True, list(candidate.roles)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class CredentialStore(Protocol):
    def create_user(self, username: str, password: str, roles: list[str]) -> None: ...

    def create_user_with_hash(self, username: str, password_hash: str, roles: list[str]) -> None: ...

    def validate_credentials(self, username: str, password: str) -> tuple[bool, list[str]]: ...

    def get(self, username: str) -> Credential | None: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryCredentialStore:
    """Volatile credential store for tests and database-less setups."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, Credential] = {}

    def create_user(self, username: str, password: str, roles: list[str]) -> None:
        if not password:
            raise ValidationError("password required")
        self.create_user_with_hash(username, hash_password(password), roles)

    def create_user_with_hash(self, username: str, password_hash: str, roles: list[str]) -> None:
        _check_inputs(username, password_hash)
        with self._lock:
            previous = self._users.get(username)
            self._users[username] = Credential(
                username=username,
                password_hash=password_hash,
                roles=_clean_roles(roles),
                created_at=previous.created_at if previous else _now_iso(),
            )

    def get(self, username: str) -> Credential | None:
        with self._lock:
            cred = self._users.get(username)
            return Credential(**vars(cred)) if cred else None

    def validate_credentials(self, username: str, password: str) -> tuple[bool, list[str]]:
        return _check_password(self.get(username), password)

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------


class SQLCredentialStore:
    """Persistent credential store on a shared SQLAlchemy engine.

    Usage:
        store = SQLCredentialStore(create_store_engine("sqlite:///hris.db"))
        store.create_user("alice", "s3cr3t", ["hr"])
        ok, roles = store.validate_credentials("alice", "s3cr3t")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        try:
            _metadata.create_all(engine)
        except SQLAlchemyError as exc:
            raise StorageError("credential store unavailable", detail="schema setup") from exc

    def create_user(self, username: str, password: str, roles: list[str]) -> None:
        if not password:
            raise ValidationError("password required")
        self.create_user_with_hash(username, hash_password(password), roles)

    def create_user_with_hash(self, username: str, password_hash: str, roles: list[str]) -> None:
        """Insert or replace a credential record.

        UPDATE first; when no row matched, INSERT. A concurrent insert of the
        same username surfaces as IntegrityError, after which the UPDATE is
        retried once -- either way the last writer's hash and roles win.
        """
        _check_inputs(username, password_hash)
        values = {"password_hash": password_hash, "roles": json.dumps(_clean_roles(roles)), "updated_at": _now_iso()}
        stmt = _credentials.update().where(_credentials.c.username == username).values(**values)
        try:
            with self.engine.connect() as conn:
                if conn.execute(stmt).rowcount == 0:
                    try:
                        conn.execute(_credentials.insert().values(username=username, created_at=_now_iso(), **values))
                    except IntegrityError:
                        conn.rollback()
                        conn.execute(stmt)
                conn.commit()
        except SQLAlchemyError as exc:
            logger.warning("Credential upsert for %r failed: %s", username, exc.__class__.__name__)
            raise StorageError("credential store unavailable") from exc

    def get(self, username: str) -> Credential | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_credentials.select().where(_credentials.c.username == username)).fetchone()
        except SQLAlchemyError as exc:
            logger.warning("Credential lookup failed: %s", exc.__class__.__name__)
            raise StorageError("credential store unavailable") from exc
        return _row_to_credential(row) if row is not None else None

    def validate_credentials(self, username: str, password: str) -> tuple[bool, list[str]]:
        return _check_password(self.get(username), password)

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_credential(row) -> Credential:
    return Credential(
        username=row.username,
        password_hash=row.password_hash,
        roles=json.loads(row.roles or "[]"),
        created_at=row.created_at,
    )
