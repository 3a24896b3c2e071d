"""
records/legacy.py -- Normalize and import historical employee documents.

Older exports spell several employee fields without underscores
(employeeid, legalname, hiredate, preferredname). normalize_employee() maps
them onto the canonical names; import_employees() runs every document of an
export through the normalizer and EmployeeService.create().

Rules:
  - The canonical field wins when both spellings are present.
  - The legacy key is always removed from the normalized copy.
  - Documents without any identifier get one generated by the service.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from core.errors import Conflict, ValidationError
from records.employees import EmployeeService
from records.models import Document, ImportResult

logger = logging.getLogger("hris.records")

LEGACY_EMPLOYEE_FIELDS: dict[str, str] = {
    "employeeid": "employee_id",
    "legalname": "legal_name",
    "hiredate": "hire_date",
    "preferredname": "preferred_name",
}


def normalize_employee(doc: Document) -> tuple[Document, bool]:
    """Return (normalized copy, changed). The input is not modified."""
    out = dict(doc)
    changed = False
    for legacy, canonical in LEGACY_EMPLOYEE_FIELDS.items():
        if legacy not in out:
            continue
        value = out.pop(legacy)
        changed = True
        if out.get(canonical) in (None, "") and value is not None:
            out[canonical] = value
    return out, changed


def import_employees(service: EmployeeService, docs: Iterable[Document]) -> ImportResult:
    """Create every document in docs, skipping identifiers that already exist.

    Validation failures do not stop the import; each one is recorded in
    ImportResult.errors with its position in the input.
    """
    result = ImportResult()
    for index, raw in enumerate(docs):
        if not isinstance(raw, dict):
            result.errors.append(f"#{index}: not a JSON object")
            continue
        doc, changed = normalize_employee(raw)
        try:
            service.create(doc)
        except Conflict:
            result.skipped += 1
            continue
        except ValidationError as exc:
            result.errors.append(f"#{index}: {exc.message}")
            continue
        if changed:
            logger.info("Normalized legacy fields on import #%d", index)
        result.created += 1
    return result
