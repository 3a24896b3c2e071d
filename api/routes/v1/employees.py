"""
api/routes/v1/employees.py -- Employee document routes.

Routes:
  GET    /employees                 -- filtered, sorted, paginated list
  POST   /employees                 -- create (employee_id generated if absent)
  GET    /employees/{employee_id}   -- fetch one (legacy 'employeeid' also matches)
  PUT    /employees/{employee_id}   -- version-checked merge; body 'version' is the expected version
  DELETE /employees/{employee_id}   -- hard delete (admin only), 204 with no body

Query parameters on GET /employees other than page and per_page are exact-match
filters on dot-path field names, e.g. ?department=hr&legal_name.first=Ada.
sort is a comma-separated field list with '-' for descending.

Errors raised by the service (ValidationError, NotFound, VersionConflict,
StorageError) propagate to the handlers in api/main.py.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response

from api.models import EmployeePage
from auth.dependencies import get_current_principal, require_admin
from bootstrap import Stores
from core.errors import ValidationError
from records.models import stored_version

# Every employee route requires a valid token; deletion additionally requires admin.
router = APIRouter(dependencies=[Depends(get_current_principal)])

_PAGING_PARAMS = {"page", "per_page"}


def _stores(request: Request) -> Stores:
    return request.app.state.stores


def _expected_version(body: dict[str, Any]) -> int | None:
    """Read the expected version from an update body.

    Absent or null means "no version check". Anything present must be an
    integral number.
    """
    if body.get("version") is None:
        return None
    value = body["version"]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("version must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError("version must be an integer")
    return stored_version({"version": value})


@router.get("/employees", response_model=EmployeePage)
def list_employees(
    request: Request,
    page: int = Query(default=1),
    per_page: int = Query(default=20),
) -> EmployeePage:
    filters = {k: v for k, v in request.query_params.items() if k not in _PAGING_PARAMS}
    result = _stores(request).employees.list(page=page, per_page=per_page, filters=filters)
    return EmployeePage(items=result.items, total=result.total, page=result.page, per_page=result.per_page)


@router.post("/employees", status_code=201)
def create_employee(request: Request, body: dict[str, Any] = Body(...)) -> dict[str, Any]:
    return _stores(request).employees.create(body)


@router.get("/employees/{employee_id}")
def get_employee(request: Request, employee_id: str) -> dict[str, Any]:
    return _stores(request).employees.get(employee_id)


@router.put("/employees/{employee_id}")
def update_employee(request: Request, employee_id: str, body: dict[str, Any] = Body(...)) -> dict[str, Any]:
    return _stores(request).employees.update(employee_id, body, _expected_version(body))


@router.delete("/employees/{employee_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_employee(request: Request, employee_id: str) -> Response:
    _stores(request).employees.delete(employee_id)
    return Response(status_code=204)
