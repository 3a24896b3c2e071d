"""
tests/test_api_routes.py -- Integration tests for the auth, employee and payroll routes.

These tests exercise the full stack: FastAPI routing -> auth dependency
injection -> services and SQL repositories -> exception handlers. Unit testing
individual route functions would miss middleware, dependency injection, and
error envelope rendering.

Coverage:
  - Auth failures: 401 without/with a bad token, 403 for a non-admin on admin routes
  - Login: valid 200 (token works on /me), wrong password and unknown user 401
  - Employees: create 201, get 200, 404, duplicate 409, versioned PUT 200/409,
    invalid fields 400, filtered/sorted/paginated list, admin DELETE 204
  - Payroll: admin create 201 with net computed, get, list by employee
  - Error envelope: {"error": {"code", "message", "detail"}} on every failure

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, staff_token). The seeded admin logs in
    with the HRIS_ADMIN_* settings; the staff token carries role "hr" only.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time

import pytest
from fastapi.testclient import TestClient

from core.config import get_settings
from core.errors import StorageError

ApiClient = tuple[TestClient, str, str]

# conftest.py seeds the admin from these settings before the client starts.
ADMIN_USER = get_settings().admin_user
ADMIN_PASSWORD = get_settings().admin_password
JWT_SECRET = get_settings().jwt_secret


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _token_with_alg(alg: str) -> str:
    """An admin token signed with the real secret whose header claims another algorithm."""
    header = {"alg": alg, "typ": "JWT"}
    payload = {"sub": ADMIN_USER, "roles": ["admin"], "exp": int(time.time()) + 600}
    signing_input = f"{_b64(json.dumps(header).encode())}.{_b64(json.dumps(payload).encode())}"
    if alg == "none":
        return f"{signing_input}."
    sig = hmac.new(JWT_SECRET.encode(), signing_input.encode(), hashlib.sha256).digest()
    return f"{signing_input}.{_b64(sig)}"


def _create_employee(client: TestClient, token: str, **fields) -> dict:
    resp = client.post("/api/v1/employees", json=fields, headers=auth_headers(token))
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()


class TestAuthFailure:
    """Requests without a usable identity are refused before any route logic runs."""

    def test_list_employees_unauthenticated(self, api_client: ApiClient) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/employees")
        assert resp.status_code == 401, f"Expected 401, got {resp.status_code}"
        assert resp.json()["error"]["code"] == "unauthorized"
        assert resp.headers.get("WWW-Authenticate") == "Bearer"

    def test_garbage_token(self, api_client: ApiClient) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/auth/me", headers=auth_headers("not.a.token"))
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "invalid token"

    def test_wrong_scheme(self, api_client: ApiClient) -> None:
        client, admin_token, _ = api_client
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Basic {admin_token}"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("alg", ["HS384", "none"])
    def test_token_declaring_other_algorithm(self, api_client: ApiClient, alg: str) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/auth/me", headers=auth_headers(_token_with_alg(alg)))
        assert resp.status_code == 401, f"Expected 401, got {resp.status_code}: {resp.text}"
        assert resp.json()["error"]["message"] == "invalid token"

    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("delete", "/api/v1/employees/anyone", None),
            ("post", "/api/v1/payroll", {"employee_id": "e1", "gross": 100}),
            ("post", "/api/v1/auth/users", {"username": "x", "password": "y", "roles": []}),
        ],
    )
    def test_non_admin_forbidden(self, api_client: ApiClient, method: str, path: str, body) -> None:
        client, _, staff_token = api_client
        kwargs = {"headers": auth_headers(staff_token)}
        if body is not None:
            kwargs["json"] = body
        resp = getattr(client, method)(path, **kwargs)
        assert resp.status_code == 403, f"Expected 403, got {resp.status_code}: {resp.text}"
        assert resp.json()["error"]["code"] == "forbidden"


class TestAuthRoutes:
    def test_login_valid_credentials(self, api_client: ApiClient) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/login", json={"username": ADMIN_USER, "password": ADMIN_PASSWORD})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["roles"] == ["admin"]
        assert resp.headers.get("Cache-Control") == "no-store"

        me = client.get("/api/v1/auth/me", headers=auth_headers(data["access_token"]))
        assert me.status_code == 200
        assert me.json() == {"username": ADMIN_USER, "roles": ["admin"]}

    @pytest.mark.parametrize("username,password", [(ADMIN_USER, "wrongpass"), ("nouser", "x")])
    def test_login_rejected_uniformly(self, api_client: ApiClient, username: str, password: str) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/login", json={"username": username, "password": password})
        assert resp.status_code == 401, f"Expected 401, got {resp.status_code}"
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_login_missing_password_is_400(self, api_client: ApiClient) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/login", json={"username": ADMIN_USER})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_admin_creates_user_who_can_log_in(self, api_client: ApiClient) -> None:
        client, admin_token, _ = api_client
        body = {"username": "hr-clerk", "password": "clerkpass1", "roles": ["hr"]}
        resp = client.post("/api/v1/auth/users", json=body, headers=auth_headers(admin_token))
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        assert resp.json() == {"username": "hr-clerk", "roles": ["hr"]}

        login = client.post("/api/v1/auth/login", json={"username": "hr-clerk", "password": "clerkpass1"})
        assert login.status_code == 200
        assert login.json()["roles"] == ["hr"]

    def test_multibyte_password_over_bcrypt_limit_is_400(self, api_client: ApiClient) -> None:
        client, admin_token, _ = api_client
        body = {"username": "long-pw", "password": "é" * 40, "roles": ["hr"]}
        resp = client.post("/api/v1/auth/users", json=body, headers=auth_headers(admin_token))
        assert resp.status_code == 400, f"Expected 400, got {resp.status_code}: {resp.text}"
        assert resp.json()["error"] == {
            "code": "validation_error",
            "message": "password too long",
            "detail": "at most 72 bytes in UTF-8",
        }

    def test_password_whitespace_is_significant(self, api_client: ApiClient) -> None:
        client, admin_token, _ = api_client
        body = {"username": " spaced ", "password": " pass phrase ", "roles": []}
        resp = client.post("/api/v1/auth/users", json=body, headers=auth_headers(admin_token))
        assert resp.status_code == 201
        assert resp.json()["username"] == "spaced"

        ok = client.post("/api/v1/auth/login", json={"username": "spaced", "password": " pass phrase "})
        assert ok.status_code == 200
        trimmed = client.post("/api/v1/auth/login", json={"username": "spaced", "password": "pass phrase"})
        assert trimmed.status_code == 401


class TestEmployeeRoutes:
    def test_create_and_get(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        created = _create_employee(client, staff_token, employee_id="api-e1", email="ada@example.com")
        assert created["version"] == 1

        resp = client.get("/api/v1/employees/api-e1", headers=auth_headers(staff_token))
        assert resp.status_code == 200
        assert resp.json() == created

    def test_generated_identifier(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        created = _create_employee(client, staff_token, legal_name={"first": "Grace"})
        assert created["employee_id"].startswith("emp-")

    def test_get_missing_is_404(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        resp = client.get("/api/v1/employees/does-not-exist", headers=auth_headers(staff_token))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_duplicate_is_409(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        _create_employee(client, staff_token, employee_id="api-dup")
        resp = client.post("/api/v1/employees", json={"employee_id": "api-dup"}, headers=auth_headers(staff_token))
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_invalid_email_is_400(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        resp = client.post(
            "/api/v1/employees", json={"employee_id": "api-bad", "email": "nope"}, headers=auth_headers(staff_token)
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "invalid email"

    def test_non_object_body_is_400(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        resp = client.post("/api/v1/employees", json=["not", "an", "object"], headers=auth_headers(staff_token))
        assert resp.status_code == 400

    def test_versioned_update(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        headers = auth_headers(staff_token)
        _create_employee(client, staff_token, employee_id="api-v", department="hr")

        ok = client.put("/api/v1/employees/api-v", json={"department": "ops", "version": 1}, headers=headers)
        assert ok.status_code == 200, f"Expected 200, got {ok.status_code}: {ok.text}"
        assert ok.json()["version"] == 2
        assert ok.json()["department"] == "ops"

        stale = client.put("/api/v1/employees/api-v", json={"department": "finance", "version": 1}, headers=headers)
        assert stale.status_code == 409, f"Expected 409, got {stale.status_code}"
        error = stale.json()["error"]
        assert error["code"] == "version_conflict"
        assert error["detail"] == "expected version 1, stored version 2"

        current = client.get("/api/v1/employees/api-v", headers=headers).json()
        assert current["department"] == "ops"
        assert current["version"] == 2

    def test_update_with_non_integer_version_is_400(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        _create_employee(client, staff_token, employee_id="api-vv")
        resp = client.put(
            "/api/v1/employees/api-vv", json={"version": "one"}, headers=auth_headers(staff_token)
        )
        assert resp.status_code == 400

    def test_update_missing_is_404(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        resp = client.put("/api/v1/employees/ghost", json={"department": "x"}, headers=auth_headers(staff_token))
        assert resp.status_code == 404

    def test_list_filter_sort_paginate(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        for emp_id in ["q3", "q1", "q5", "q2", "q4"]:
            _create_employee(client, staff_token, employee_id=emp_id, department="qa-list")
        resp = client.get(
            "/api/v1/employees",
            params={"department": "qa-list", "sort": "-employee_id", "page": 1, "per_page": 2},
            headers=auth_headers(staff_token),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 5
        assert data["page"] == 1
        assert data["per_page"] == 2
        assert [d["employee_id"] for d in data["items"]] == ["q5", "q4"]

    def test_admin_delete(self, api_client: ApiClient) -> None:
        client, admin_token, staff_token = api_client
        _create_employee(client, staff_token, employee_id="api-del")
        resp = client.delete("/api/v1/employees/api-del", headers=auth_headers(admin_token))
        assert resp.status_code == 204
        assert resp.content == b""
        assert client.get("/api/v1/employees/api-del", headers=auth_headers(admin_token)).status_code == 404

    def test_storage_failure_is_503(self, api_client: ApiClient, monkeypatch) -> None:
        client, _, staff_token = api_client
        repo = client.app.state.stores.employees.repo

        def unavailable():
            raise StorageError("employees store unavailable", detail="list")

        monkeypatch.setattr(repo, "list", unavailable)
        resp = client.get("/api/v1/employees", headers=auth_headers(staff_token))
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "storage_unavailable"


class TestPayrollRoutes:
    def test_create_get_and_list(self, api_client: ApiClient) -> None:
        client, admin_token, staff_token = api_client
        body = {"employee_id": "pay-e1", "period": "2024-02", "gross": 2000, "deductions": 150, "taxes": 250}
        resp = client.post("/api/v1/payroll", json=body, headers=auth_headers(admin_token))
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        record = resp.json()
        assert record["net"] == 1600
        assert record["version"] == 1

        fetched = client.get(f"/api/v1/payroll/{record['id']}", headers=auth_headers(staff_token))
        assert fetched.status_code == 200
        assert fetched.json() == record

        earlier = dict(body, period="2024-01")
        client.post("/api/v1/payroll", json=earlier, headers=auth_headers(admin_token))
        listing = client.get("/api/v1/payroll/employee/pay-e1", headers=auth_headers(staff_token))
        assert listing.status_code == 200
        data = listing.json()
        assert data["total"] == 2
        assert [r["period"] for r in data["items"]] == ["2024-01", "2024-02"]

    def test_non_numeric_amount_is_400(self, api_client: ApiClient) -> None:
        client, admin_token, _ = api_client
        resp = client.post(
            "/api/v1/payroll", json={"employee_id": "e1", "gross": "lots"}, headers=auth_headers(admin_token)
        )
        assert resp.status_code == 400

    def test_missing_record_is_404(self, api_client: ApiClient) -> None:
        client, _, staff_token = api_client
        assert client.get("/api/v1/payroll/nope", headers=auth_headers(staff_token)).status_code == 404


def test_unknown_path_uses_error_envelope(api_client: ApiClient) -> None:
    client, _, _ = api_client
    resp = client.get("/api/v1/nothing-here")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"
