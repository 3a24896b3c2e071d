"""
core/errors.py -- Error taxonomy shared by the repository, service, and auth layers.

Each error carries the HTTP status and machine-readable code it maps to, so
the boundary layer (api/main.py) translates them with a single exception
handler instead of one try/except per route.

  ValidationError  400  malformed or missing input; never retried
  Unauthorized     401  missing/invalid/expired token or wrong signing algorithm
  Forbidden        403  valid identity lacking the required role
  NotFound         404  identifier absent
  Conflict         409  identifier already exists
  VersionConflict  409  optimistic-lock mismatch; re-read and retry
  StorageError     503  backend unreachable or timed out; not retried here

Layer rule: core/ is the kernel. No imports from api/, auth/, or records/.
"""

from __future__ import annotations


class HRISError(Exception):
    """Base class for every error the core layers raise on purpose."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "", *, detail: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.detail = detail


class ValidationError(HRISError):
    status_code = 400
    code = "validation_error"


class Unauthorized(HRISError):
    status_code = 401
    code = "unauthorized"


class Forbidden(HRISError):
    status_code = 403
    code = "forbidden"


class NotFound(HRISError):
    status_code = 404
    code = "not_found"


class Conflict(HRISError):
    status_code = 409
    code = "conflict"


class VersionConflict(Conflict):
    """The caller's expected version does not match the stored one.

    expected/actual are kept so the API can tell the client which version to
    re-read before retrying.
    """

    code = "version_conflict"

    def __init__(self, message: str = "version mismatch", *, expected: int | None = None, actual: int | None = None):
        detail = None
        if expected is not None or actual is not None:
            detail = f"expected version {expected}, stored version {actual}"
        super().__init__(message, detail=detail)
        self.expected = expected
        self.actual = actual


class StorageError(HRISError):
    status_code = 503
    code = "storage_unavailable"
