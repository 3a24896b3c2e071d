"""
records/query.py -- Filtering, sorting, and pagination over document lists.

Pure functions: no storage access, no locking. The services fetch the full
collection from a repository and shape it here, which keeps both backends'
listing behavior identical by construction.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from records.models import Document, Page

SORT_KEY = "sort"
DEFAULT_PER_PAGE = 20

_MISSING = object()


def lookup(doc: Mapping[str, Any], path: str) -> Any:
    """Resolve a dot-path such as 'legal_name.first' inside a nested document.

    Returns the _MISSING sentinel (not None) when any segment is absent, so a
    stored null can still be told apart from a missing field.
    """
    if not path:
        return _MISSING
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def as_text(value: Any) -> str:
    """Render a field value for comparison.

    Query-string filters always arrive as text, so both sides of a filter
    comparison go through here. Integral floats print without the '.0' that
    JSON decoding adds (2000.0 -> '2000'); booleans print lowercase the way
    they appear in JSON.
    """
    if value is _MISSING or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"))
    return str(value)


def matches(doc: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    """True if every non-reserved filter matches exactly (logical AND).

    A document lacking a filtered field never matches.
    """
    for key, expected in filters.items():
        if key == SORT_KEY:
            continue
        actual = lookup(doc, key)
        if actual is _MISSING:
            return False
        if as_text(actual) != as_text(expected):
            return False
    return True


def parse_sort(order_by: str) -> list[tuple[str, bool]]:
    """Parse 'last_name,-hire_date' into [('last_name', False), ('hire_date', True)].

    Blank segments are dropped so a trailing comma is harmless.
    """
    fields: list[tuple[str, bool]] = []
    for raw in order_by.split(","):
        name = raw.strip()
        descending = name.startswith("-")
        name = name.lstrip("-").strip()
        if name:
            fields.append((name, descending))
    return fields


def sort_documents(docs: Sequence[Document], order_by: str) -> list[Document]:
    """Multi-key sort with the first named field taking priority.

    Keys are applied from lowest to highest priority with Python's stable
    sort, so ties on an earlier field keep the order the later fields gave
    them. Comparison is lexicographic on as_text(); a missing field sorts as
    the empty string.
    """
    ordered = list(docs)
    for name, descending in reversed(parse_sort(order_by)):
        ordered.sort(key=lambda d, n=name: as_text(lookup(d, n)), reverse=descending)
    return ordered


def paginate(docs: Sequence[Document], page: int, per_page: int) -> Page:
    """Slice one 1-based page out of docs.

    page <= 0 becomes 1 and per_page <= 0 becomes DEFAULT_PER_PAGE. A page
    past the end is empty but still reports the full total.
    """
    if per_page <= 0:
        per_page = DEFAULT_PER_PAGE
    if page <= 0:
        page = 1
    total = len(docs)
    start = (page - 1) * per_page
    items = list(docs[start : start + per_page]) if start < total else []
    return Page(items=items, total=total, page=page, per_page=per_page)


def select(docs: Sequence[Document], filters: Mapping[str, Any] | None, page: int, per_page: int) -> Page:
    """Filter, then sort (when filters carries a 'sort' key), then paginate."""
    filters = filters or {}
    filtered = [d for d in docs if matches(d, filters)]
    order_by = filters.get(SORT_KEY)
    if isinstance(order_by, str) and order_by.strip():
        filtered = sort_documents(filtered, order_by)
    return paginate(filtered, page, per_page)
