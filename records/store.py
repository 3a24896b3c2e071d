"""
records/store.py -- SQLAlchemy-backed persistent document repository.

Uses SQLAlchemy Core (not ORM): each collection is one table holding the
document body as JSON text next to the columns the repository needs to
query on. Swapping SQLite for PostgreSQL is a connection string change.

Pattern: Repository + Data Mapper. SQLDocumentRepository implements the
DocumentRepository protocol from records/repository.py; _row_to_document is
the mapper. Services never touch SQL directly.

Concurrency:
  update() is a compare-and-swap. The row is read, merged in Python, then
  written with UPDATE ... WHERE pk = :pk AND version = :read_version. If a
  concurrent writer got there first the UPDATE matches zero rows and the
  call fails with VersionConflict instead of silently overwriting the other
  writer's change. No cross-call transaction is held open.

Failures:
  Every SQLAlchemyError (connection refused, pool timeout, lock timeout) is
  logged and re-raised as core.errors.StorageError. Nothing is retried here;
  the caller decides.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    engine = create_store_engine("sqlite:///hris.db", timeout=5)
    employees = SQLDocumentRepository(EMPLOYEES, engine)
    employees.create({"employee_id": "e1"})
    employees.update("e1", {"preferred_name": "Al"}, expected_version=1)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from core.errors import Conflict, NotFound, StorageError, VersionConflict
from records.models import Collection, Document
from records.repository import apply_update, prepare_create

logger = logging.getLogger("hris.records")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()


def _documents_table(collection: Collection) -> Table:
    """Return the table for a collection, defining it on first use."""
    existing = metadata.tables.get(collection.name)
    if existing is not None:
        return existing
    return Table(
        collection.name,
        metadata,
        Column("pk", Integer, primary_key=True, autoincrement=True),
        Column("doc_id", String(255), nullable=False, unique=True),
        Column("legacy_id", String(255), index=True),  # e.g. employeeid on pre-migration rows
        Column("version", Integer, nullable=False, server_default="1"),
        Column("body", Text, nullable=False),  # JSON object
        Column("created_at", String(32), nullable=False),
        Column("updated_at", String(32), nullable=False),
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def engine_options(db_url: str, timeout: float) -> tuple[dict, dict]:
    """Return (connect_args, engine kwargs) bounding every wait by timeout.

    Covered: pool checkout, connecting, the SQLite busy lock, and on
    PostgreSQL each statement (statement_timeout, so a statement blocked on
    a row lock is cancelled).
    """
    connect_args: dict = {}
    engine_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = timeout
        if ":memory:" in db_url:
            # One shared connection; a plain :memory: DB is per-connection.
            engine_args["poolclass"] = StaticPool
    else:
        engine_args["pool_timeout"] = timeout
        engine_args["pool_pre_ping"] = True
        if db_url.startswith("postgresql"):
            connect_args["connect_timeout"] = max(1, int(timeout))
            connect_args["options"] = f"-c statement_timeout={int(timeout * 1000)}"
    return connect_args, engine_args


def create_store_engine(db_url: str, timeout: float = 5.0) -> Engine:
    """Create the engine shared by every SQL-backed store.

    Hitting the timeout raises an SQLAlchemyError that the stores surface
    as StorageError.
    """
    connect_args, engine_args = engine_options(db_url, timeout)
    engine = create_engine(db_url, connect_args=connect_args, **engine_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(doc: Document) -> str:
    return json.dumps(doc, separators=(",", ":"))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SQLDocumentRepository:
    """Persistent DocumentRepository over one SQL table.

    The engine is owned by the caller (bootstrap.open_stores) and shared
    between collections; close() here is a no-op for the same reason.
    """

    def __init__(self, collection: Collection, engine: Engine) -> None:
        self.collection = collection
        self.engine = engine
        self._table = _documents_table(collection)
        with self._guard("schema setup"):
            metadata.create_all(engine, tables=[self._table])

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.warning("%s %s failed: %s", self.collection.name, action, exc.__class__.__name__)
            raise StorageError(f"{self.collection.name} store unavailable", detail=action) from exc

    def _find(self, conn: Connection, doc_id: str):
        """Return the row for a canonical or legacy identifier, or None.

        A canonical match wins over a legacy one when both exist.
        """
        t = self._table
        rows = conn.execute(
            t.select().where(or_(t.c.doc_id == doc_id, t.c.legacy_id == doc_id)).order_by(t.c.pk)
        ).fetchall()
        for row in rows:
            if row.doc_id == doc_id:
                return row
        return rows[0] if rows else None

    def _not_found(self, doc_id: str) -> NotFound:
        return NotFound(f"{self.collection.name} {doc_id!r} not found")

    def list(self) -> list[Document]:
        with self._guard("list"):
            with self.engine.connect() as conn:
                rows = conn.execute(self._table.select().order_by(self._table.c.pk)).fetchall()
        return [_row_to_document(r) for r in rows]

    def create(self, doc: Document) -> Document:
        """Insert a new document at version 1.

        Raises Conflict when the identifier is already taken (UNIQUE doc_id).
        """
        doc_id, stored = prepare_create(self.collection, doc)
        now = _now_iso()
        with self._guard("create"):
            with self.engine.connect() as conn:
                try:
                    conn.execute(
                        self._table.insert().values(
                            doc_id=doc_id,
                            legacy_id=self.collection.legacy_identifier_of(stored),
                            version=1,
                            body=_dump(stored),
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    conn.commit()
                except IntegrityError as exc:
                    conn.rollback()
                    raise Conflict(f"{self.collection.id_field} {doc_id!r} already exists") from exc
        return stored

    def get(self, doc_id: str) -> Document:
        with self._guard("get"):
            with self.engine.connect() as conn:
                row = self._find(conn, doc_id)
        if row is None:
            raise self._not_found(doc_id)
        return _row_to_document(row)

    def update(self, doc_id: str, patch: Document, expected_version: int | None = None) -> Document:
        """Version-checked merge, written with a compare-and-swap.

        VersionConflict is raised both for a stale expected_version and for a
        concurrent writer that bumped the row between our read and write.
        """
        t = self._table
        with self._guard("update"):
            with self.engine.connect() as conn:
                row = self._find(conn, doc_id)
                if row is None:
                    raise self._not_found(doc_id)
                merged = apply_update(self.collection, _row_to_document(row), patch, expected_version)
                result = conn.execute(
                    t.update()
                    .where((t.c.pk == row.pk) & (t.c.version == row.version))
                    .values(
                        version=merged["version"],
                        legacy_id=self.collection.legacy_identifier_of(merged),
                        body=_dump(merged),
                        updated_at=_now_iso(),
                    )
                )
                if result.rowcount == 0:
                    conn.rollback()
                    latest = self._find(conn, doc_id)
                    if latest is None:
                        raise self._not_found(doc_id)
                    raise VersionConflict(expected=row.version, actual=latest.version)
                conn.commit()
        return merged

    def delete(self, doc_id: str) -> None:
        t = self._table
        with self._guard("delete"):
            with self.engine.connect() as conn:
                row = self._find(conn, doc_id)
                if row is None:
                    raise self._not_found(doc_id)
                result = conn.execute(t.delete().where(t.c.pk == row.pk))
                conn.commit()
        if result.rowcount == 0:
            raise self._not_found(doc_id)

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_document(row) -> Document:
    # The version column is authoritative; the body copy is informational.
    doc = json.loads(row.body)
    doc["version"] = row.version
    return doc
