"""
records/employees.py -- Employee service: validation and querying atop a DocumentRepository.

The repository owns storage and optimistic locking; this layer owns the
employee-specific rules:
  - employee_id is generated server-side when the caller leaves it out
  - email, when present, must be a syntactically valid address (pydantic EmailStr)
  - hire_date, when present, must be an ISO calendar date (YYYY-MM-DD)
  - list() filters on exact dot-path values, sorts, and paginates
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from core.errors import ValidationError
from records import query
from records.models import Document, Page, new_document_id
from records.repository import DocumentRepository

logger = logging.getLogger("hris.records")

# Syntax only; no DNS lookups.
_EMAIL = TypeAdapter(EmailStr)
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_fields(doc: Mapping[str, Any]) -> None:
    """Raise ValidationError for a malformed email or hire_date.

    Both checks apply only when the field is present and non-empty.
    """
    email = doc.get("email")
    if email not in (None, ""):
        if not isinstance(email, str):
            raise ValidationError("invalid email", detail="email must be a string")
        try:
            _EMAIL.validate_python(email)
        except PydanticValidationError as exc:
            raise ValidationError("invalid email", detail=exc.errors()[0]["msg"]) from exc
    hire_date = doc.get("hire_date")
    if hire_date not in (None, ""):
        if not isinstance(hire_date, str) or not _DATE_PATTERN.match(hire_date):
            raise ValidationError("invalid hire_date", detail="expected YYYY-MM-DD")
        try:
            datetime.strptime(hire_date, "%Y-%m-%d")
        except ValueError as exc:
            raise ValidationError("invalid hire_date", detail=str(exc)) from exc


class EmployeeService:
    """CRUD and listing for employee documents.

    Usage:
        svc = EmployeeService(InMemoryDocumentRepository(EMPLOYEES))
        emp = svc.create({"legal_name": {"first": "Ada"}, "email": "ada@example.com"})
        page = svc.list(page=1, per_page=10, filters={"department": "hr", "sort": "-hire_date"})
    """

    def __init__(self, repo: DocumentRepository) -> None:
        self.repo = repo

    @property
    def id_field(self) -> str:
        return self.repo.collection.id_field

    def create(self, doc: Document) -> Document:
        if not isinstance(doc, dict):
            raise ValidationError("employee is required")
        validate_fields(doc)
        if doc.get(self.id_field) in (None, ""):
            doc = {**doc, self.id_field: new_document_id(self.repo.collection.id_prefix)}
        created = self.repo.create(doc)
        logger.info("Employee %s created", created[self.id_field])
        return created

    def get(self, employee_id: str) -> Document:
        return self.repo.get(employee_id)

    def update(self, employee_id: str, patch: Document, expected_version: int | None = None) -> Document:
        if not isinstance(patch, dict):
            raise ValidationError("patch must be a JSON object")
        validate_fields(patch)
        updated = self.repo.update(employee_id, patch, expected_version)
        logger.info("Employee %s updated to version %s", employee_id, updated.get("version"))
        return updated

    def delete(self, employee_id: str) -> None:
        self.repo.delete(employee_id)
        logger.info("Employee %s deleted", employee_id)

    def list(self, page: int = 1, per_page: int = query.DEFAULT_PER_PAGE, filters: Mapping[str, Any] | None = None) -> Page:
        """Return one page of employees matching every filter.

        filters maps dot-path field names to exact values; the reserved key
        'sort' holds a comma-separated field list ('-' prefix = descending).
        Page.total is the filtered count before pagination.
        """
        return query.select(self.repo.list(), filters, page, per_page)
