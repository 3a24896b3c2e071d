"""
records/models.py -- Domain shapes for the HRIS document collections.

Documents themselves stay schema-on-read: a Document is a JSON object
(pydantic JsonValue covers str, int, float, bool, None, nested objects and
lists). What is fixed per collection -- identifier field, legacy spellings,
generated-id prefix -- lives in the Collection descriptor so one repository
implementation serves both employees and payroll.

Separation of concerns: these are pure data containers. Validation lives in
the services (records/employees.py, records/payroll.py); persistence lives in
records/repository.py and records/store.py.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import JsonValue

Document = dict[str, JsonValue]


@dataclass(frozen=True)
class Collection:
    """Describes one document collection.

    id_field is the canonical identifier. legacy_id_fields are older spellings
    still present in historical data; lookups match them transparently.
    """

    name: str
    id_field: str
    id_prefix: str
    legacy_id_fields: tuple[str, ...] = ()

    def identifier_of(self, doc: dict[str, Any]) -> str | None:
        value = doc.get(self.id_field)
        return value if isinstance(value, str) and value else None

    def legacy_identifier_of(self, doc: dict[str, Any]) -> str | None:
        for name in self.legacy_id_fields:
            value = doc.get(name)
            if isinstance(value, str) and value:
                return value
        return None


EMPLOYEES = Collection(name="employees", id_field="employee_id", id_prefix="emp", legacy_id_fields=("employeeid",))
PAYROLL = Collection(name="payroll", id_field="id", id_prefix="pay", legacy_id_fields=("payroll_id",))


@dataclass
class Page:
    """One page of a filtered, sorted listing. total counts every match, not just this page."""

    items: list[Document]
    total: int
    page: int
    per_page: int


@dataclass
class ImportResult:
    created: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def new_document_id(prefix: str) -> str:
    """Return a server-generated identifier such as 'emp-18c1f2a3b4c5d6e7-9f3a1c'.

    Nanosecond timestamp keeps ids roughly insertion-ordered; the random
    suffix keeps two ids minted in the same tick apart.
    """
    return f"{prefix}-{time.time_ns():x}-{secrets.token_hex(3)}"


def stored_version(doc: dict[str, Any]) -> int:
    """Read the optimistic-lock version of a stored document.

    JSON round-trips may hand back 3.0 for 3; a missing or non-numeric
    version counts as 0 so the first update of a legacy document yields 1.
    """
    value = doc.get("version")
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0
