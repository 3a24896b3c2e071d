"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the HRIS backend happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
at the entry point and pass the Settings instance down.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Entry
      points (api/main.py lifespan, main.py CLI) call it once and hand the
      instance to bootstrap.open_stores(); stores and services never read it.

  BaseSettings (pydantic-settings): Reads values from HRIS_-prefixed
      environment variables and an optional .env file. Field names map to env
      var names (e.g. jwt_secret -> HRIS_JWT_SECRET).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode (HRIS_DEBUG=true) fills in a random JWT secret and a
      well-known admin password with a warning; production mode refuses to
      start without them.

Security notes:
  JWT secrets shorter than 32 chars are rejected outright. HS256 signing
  relies on key entropy -- a short key weakens every issued token.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or records/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("hris.config")

_DEV_ADMIN_PASSWORD = "password"  # noqa: S105 # nosec B105 -- dev-mode only


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings(debug=True) can be instantiated in
    test environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="HRIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured".
    jwt_secret: str = ""
    token_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    # Empty means volatile in-memory backends (process lifetime only).
    database_url: str = ""
    # Upper bound for acquiring a connection from the store. A timeout
    # surfaces as StorageError; nothing retries automatically.
    store_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # Seeded administrator
    # ------------------------------------------------------------------

    admin_user: str = "admin"
    admin_password: str = ""
    # Precomputed bcrypt hash; wins over admin_password when both are set.
    admin_password_hash: str = ""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the JWT secret and admin credential policy.

        Dev mode (HRIS_DEBUG=true): auto-generate a random JWT secret and fall
            back to the well-known admin password, each with a warning.

        Production mode: refuse to start without HRIS_JWT_SECRET or without
            one of HRIS_ADMIN_PASSWORD / HRIS_ADMIN_PASSWORD_HASH.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT secret. Tokens will not survive a restart.")
            else:
                raise ValueError(
                    "HRIS_JWT_SECRET is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set HRIS_DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("HRIS_JWT_SECRET must be at least 32 characters.")

        if not self.admin_password and not self.admin_password_hash:
            if self.debug:
                self.admin_password = _DEV_ADMIN_PASSWORD
                logger.warning("Seeding admin user %r with the default dev password.", self.admin_user)
            else:
                raise ValueError("HRIS_ADMIN_PASSWORD or HRIS_ADMIN_PASSWORD_HASH is required in production mode.")
        if self.store_timeout_seconds <= 0:
            raise ValueError("HRIS_STORE_TIMEOUT_SECONDS must be positive.")
        return self

    @property
    def uses_memory_store(self) -> bool:
        return not self.database_url


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
