"""
tests/conftest.py -- Shared test fixtures for HRIS integration tests.

This module provides:
  - make_stores(): isolated stores on a private in-memory SQLite engine
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: (TestClient, admin token, staff token) for API integration tests
  - settings: the Settings instance the test app runs with

The HRIS_* env vars must be set before any core/auth import so get_settings()
auto-generates the JWT secret in dev mode rather than raising ValueError, and
so the login rate limit does not trip during a test run.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any core/auth import (get_settings() is cached).
os.environ.setdefault("HRIS_DEBUG", "true")
os.environ.setdefault("HRIS_ADMIN_PASSWORD", "adminpass123")
os.environ.setdefault("HRIS_LOGIN_RATE_LIMIT", "1000/minute")
os.environ.pop("HRIS_DATABASE_URL", None)

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.tokens import create_access_token
from bootstrap import Stores, open_stores, seed_admin
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_stores(settings: Settings, database_url: str = "sqlite:///:memory:") -> Stores:
    """Open stores for settings on an isolated database.

    sqlite:///:memory: gets a StaticPool engine (one shared connection), so
    every TestClient worker thread sees the same schema. Pass "" for the
    in-memory backends.
    """
    return open_stores(settings.model_copy(update={"database_url": database_url}))


def _patch_lifespan(settings: Settings, stores: Stores):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.stores = stores
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def settings() -> Settings:
    return get_settings()


@pytest.fixture(scope="module")
def api_client(settings) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, staff_token) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use an isolated SQLite database.
    The seeded admin logs in with settings.admin_password; the staff token has the
    "hr" role only and is refused on admin routes.
    """
    stores = make_stores(settings)
    seed_admin(stores, settings)

    admin_token = create_access_token(settings.admin_user, ["admin"], settings.jwt_secret, 3600)
    staff_token = create_access_token("staff", ["hr"], settings.jwt_secret, 3600)

    app.router.lifespan_context = _patch_lifespan(settings, stores)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, admin_token, staff_token

    stores.close()
