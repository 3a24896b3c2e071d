"""
bootstrap.py -- Storage assembly shared by the API and the CLI.

open_stores() is the single place that decides between in-memory and SQL
backends. It reads the Settings instance it is given -- no module-level
toggle -- and returns a Stores handle that is passed to whatever needs
storage (app.state.stores in the API, a local variable in main.py).

  HRIS_DATABASE_URL unset  -> InMemoryDocumentRepository / InMemoryCredentialStore
  HRIS_DATABASE_URL set    -> SQLDocumentRepository / SQLCredentialStore on one engine

A database that cannot be reached at startup is a hard failure
(StorageError); only the absence of configuration selects memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.store import CredentialStore, InMemoryCredentialStore, SQLCredentialStore
from core.config import Settings
from records.employees import EmployeeService
from records.models import EMPLOYEES, PAYROLL
from records.payroll import PayrollService
from records.repository import DocumentRepository, InMemoryDocumentRepository
from records.store import SQLDocumentRepository, create_store_engine

logger = logging.getLogger("hris.bootstrap")


@dataclass
class Stores:
    """Every storage-backed component, wired once at startup."""

    employees: EmployeeService
    payroll: PayrollService
    credentials: CredentialStore
    backend: str  # "memory" | "sql"
    engine: Engine | None = None

    def ping(self) -> bool:
        """True if the backing store answers. Memory backends always do."""
        if self.engine is None:
            return True
        try:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.credentials.close()
        if self.engine is not None:
            self.engine.dispose()


def open_stores(settings: Settings) -> Stores:
    """Build the stores selected by settings.database_url."""
    employee_repo: DocumentRepository
    payroll_repo: DocumentRepository
    if settings.uses_memory_store:
        employee_repo = InMemoryDocumentRepository(EMPLOYEES)
        payroll_repo = InMemoryDocumentRepository(PAYROLL)
        stores = Stores(
            employees=EmployeeService(employee_repo),
            payroll=PayrollService(payroll_repo),
            credentials=InMemoryCredentialStore(),
            backend="memory",
        )
        logger.warning("HRIS_DATABASE_URL not set -- using in-memory storage (data is lost on restart)")
        return stores

    engine = create_store_engine(settings.database_url, timeout=settings.store_timeout_seconds)
    employee_repo = SQLDocumentRepository(EMPLOYEES, engine)
    payroll_repo = SQLDocumentRepository(PAYROLL, engine)
    stores = Stores(
        employees=EmployeeService(employee_repo),
        payroll=PayrollService(payroll_repo),
        credentials=SQLCredentialStore(engine),
        backend="sql",
        engine=engine,
    )
    logger.info("Using SQL storage (%s)", engine.url.render_as_string(hide_password=True))
    return stores


def seed_admin(stores: Stores, settings: Settings) -> None:
    """Upsert the configured administrator with the 'admin' role.

    A precomputed hash (HRIS_ADMIN_PASSWORD_HASH) is stored as-is; otherwise
    the plaintext password is hashed. Running this on every startup keeps the
    admin credential in sync with configuration.
    """
    if settings.admin_password_hash:
        stores.credentials.create_user_with_hash(settings.admin_user, settings.admin_password_hash, ["admin"])
    else:
        stores.credentials.create_user(settings.admin_user, settings.admin_password, ["admin"])
    logger.info("Seeded admin user %r", settings.admin_user)
