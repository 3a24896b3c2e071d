"""
records/repository.py -- Document repository contract and the in-memory backend.

Pattern: Repository. Services depend on the DocumentRepository protocol, not
on a concrete backend, so InMemoryDocumentRepository (this module) and
SQLDocumentRepository (records/store.py) are interchangeable. Both share
prepare_create() and apply_update() so the version and merge rules cannot
drift apart between backends.

Optimistic concurrency:
  Every stored document carries an integer version, 1 on create. update()
  with expected_version compares it to the stored version and raises
  VersionConflict on mismatch before anything is written. A successful update
  increments the version by exactly 1.

In-memory locking:
  One threading.Lock per collection, held for the full duration of every
  call. Operations are linearizable but never concurrent with each other,
  which is fine for the small document counts this backend serves. Documents
  are deep-copied on the way in and out so callers never hold a reference
  into the stored state.
"""

from __future__ import annotations

import copy
import threading
from typing import Protocol

from core.errors import Conflict, NotFound, ValidationError, VersionConflict
from records.models import Collection, Document, stored_version


class DocumentRepository(Protocol):
    """Storage contract for one document collection.

    All methods are plain synchronous calls that return a result or raise one
    of the core.errors types. Backends may additionally raise StorageError.
    """

    collection: Collection

    def list(self) -> list[Document]: ...

    def create(self, doc: Document) -> Document: ...

    def get(self, doc_id: str) -> Document: ...

    def update(self, doc_id: str, patch: Document, expected_version: int | None = None) -> Document: ...

    def delete(self, doc_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Shared rules
# ---------------------------------------------------------------------------


def prepare_create(collection: Collection, doc: Document) -> tuple[str, Document]:
    """Validate a new document and return (identifier, document-to-store).

    The stored copy always starts at version 1, whatever the caller sent.
    """
    if not isinstance(doc, dict):
        raise ValidationError("document must be a JSON object")
    doc_id = collection.identifier_of(doc)
    if doc_id is None:
        raise ValidationError(f"{collection.id_field} required")
    stored = copy.deepcopy(doc)
    stored["version"] = 1
    return doc_id, stored


def apply_update(
    collection: Collection,
    current: Document,
    patch: Document,
    expected_version: int | None,
) -> Document:
    """Return the merged successor of current, or raise without side effects.

    Shallow merge: patch fields overwrite, every other field persists. The
    patch's own 'version' key is ignored (the repository owns versioning),
    and the identifier cannot be renamed.
    """
    if not isinstance(patch, dict):
        raise ValidationError("patch must be a JSON object")
    actual = stored_version(current)
    if expected_version is not None and expected_version != actual:
        raise VersionConflict(expected=expected_version, actual=actual)
    new_id = patch.get(collection.id_field)
    if new_id is not None and new_id != current.get(collection.id_field):
        raise ValidationError(f"{collection.id_field} cannot be changed")
    merged = copy.deepcopy(current)
    for key, value in patch.items():
        if key == "version":
            continue
        merged[key] = copy.deepcopy(value)
    merged["version"] = actual + 1
    return merged


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryDocumentRepository:
    """Volatile DocumentRepository used when no database URL is configured.

    Usage:
        repo = InMemoryDocumentRepository(EMPLOYEES)
        repo.create({"employee_id": "e1", "email": "a@example.com"})
        repo.update("e1", {"preferred_name": "Al"}, expected_version=1)
    """

    def __init__(self, collection: Collection) -> None:
        self.collection = collection
        self._lock = threading.Lock()
        self._docs: dict[str, Document] = {}

    def _resolve(self, doc_id: str) -> str:
        """Map a canonical or legacy identifier to the storage key. Caller holds the lock."""
        if doc_id in self._docs:
            return doc_id
        for key, doc in self._docs.items():
            if self.collection.legacy_identifier_of(doc) == doc_id:
                return key
        raise NotFound(f"{self.collection.name} {doc_id!r} not found")

    def list(self) -> list[Document]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._docs.values()]

    def create(self, doc: Document) -> Document:
        doc_id, stored = prepare_create(self.collection, doc)
        with self._lock:
            if doc_id in self._docs:
                raise Conflict(f"{self.collection.id_field} {doc_id!r} already exists")
            self._docs[doc_id] = stored
            return copy.deepcopy(stored)

    def get(self, doc_id: str) -> Document:
        with self._lock:
            return copy.deepcopy(self._docs[self._resolve(doc_id)])

    def update(self, doc_id: str, patch: Document, expected_version: int | None = None) -> Document:
        with self._lock:
            key = self._resolve(doc_id)
            merged = apply_update(self.collection, self._docs[key], patch, expected_version)
            self._docs[key] = merged
            return copy.deepcopy(merged)

    def delete(self, doc_id: str) -> None:
        with self._lock:
            del self._docs[self._resolve(doc_id)]

    def close(self) -> None:
        pass
