"""
api/routes/v1/payroll.py -- Payroll record routes.

Routes:
  POST /payroll                         -- create (admin only); id and net filled in when absent
  GET  /payroll/employee/{employee_id}  -- all records for one employee
  GET  /payroll/{payroll_id}            -- fetch one

/payroll/employee/{employee_id} is registered before /payroll/{payroll_id}
so the literal segment is not captured as an id.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from api.models import DocumentList
from auth.dependencies import get_current_principal, require_admin
from bootstrap import Stores


router = APIRouter(dependencies=[Depends(get_current_principal)])


def _stores(request: Request) -> Stores:
    return request.app.state.stores


@router.post("/payroll", status_code=201, dependencies=[Depends(require_admin)])
def create_payroll(request: Request, body: dict[str, Any] = Body(...)) -> dict[str, Any]:
    return _stores(request).payroll.create(body)


@router.get("/payroll/employee/{employee_id}", response_model=DocumentList)
def list_payroll_for_employee(request: Request, employee_id: str) -> DocumentList:
    items = _stores(request).payroll.list_by_employee(employee_id)
    return DocumentList(items=items, total=len(items))


@router.get("/payroll/{payroll_id}")
def get_payroll(request: Request, payroll_id: str) -> dict[str, Any]:
    return _stores(request).payroll.get(payroll_id)
