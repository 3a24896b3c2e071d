"""
records/payroll.py -- Payroll records: net pay calculation and per-employee listing.

Payroll documents share the generic DocumentRepository (identifier field
'id', legacy spelling 'payroll_id'). Amount fields are plain JSON numbers.
"""

from __future__ import annotations

import logging
from numbers import Real

from core.errors import ValidationError
from records import query
from records.models import Document, new_document_id
from records.repository import DocumentRepository

logger = logging.getLogger("hris.records")

AMOUNT_FIELDS = ("gross", "deductions", "taxes", "net")


def calculate_net(gross: float, deductions: float, taxes: float) -> float:
    """Net pay is gross minus deductions minus taxes."""
    return gross - deductions - taxes


def _is_amount(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


class PayrollService:
    def __init__(self, repo: DocumentRepository) -> None:
        self.repo = repo

    def create(self, doc: Document) -> Document:
        """Store a payroll record, filling in id and net when absent.

        Amount fields must be numbers when present. net is derived from
        gross, with missing deductions or taxes counted as zero.
        """
        if not isinstance(doc, dict):
            raise ValidationError("payroll record is required")
        for name in AMOUNT_FIELDS:
            if name in doc and doc[name] is not None and not _is_amount(doc[name]):
                raise ValidationError(f"{name} must be a number")
        doc = dict(doc)
        if doc.get(self.repo.collection.id_field) in (None, ""):
            doc[self.repo.collection.id_field] = new_document_id(self.repo.collection.id_prefix)
        if doc.get("net") is None and _is_amount(doc.get("gross")):
            doc["net"] = calculate_net(doc["gross"], doc.get("deductions") or 0, doc.get("taxes") or 0)
        created = self.repo.create(doc)
        logger.info(
            "Payroll %s created for employee %s", created[self.repo.collection.id_field], created.get("employee_id")
        )
        return created

    def get(self, payroll_id: str) -> Document:
        return self.repo.get(payroll_id)

    def list_by_employee(self, employee_id: str) -> list[Document]:
        """All payroll records for one employee, ordered by period then id."""
        docs = [d for d in self.repo.list() if query.matches(d, {"employee_id": employee_id})]
        return query.sort_documents(docs, "period,id")
