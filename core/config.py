"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for VaultPro Identity happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates a SECRET_KEY with a
      warning, production mode refuses to start without one. The Appwrite
      backend refuses to start without its endpoint, project and key.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. OTP codes and
       session secrets are stored as HMAC-SHA256 under this key.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("vaultpro.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    session_cookie_name: str = "appwrite-session"
    # The cookie contract is Secure; only turn this off for plain-HTTP local dev.
    secure_cookies: bool = True

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------

    # "local": SQLAlchemy-backed provider + store in database_url.
    # "appwrite": Appwrite Account + Databases REST APIs.
    identity_backend: Literal["local", "appwrite"] = "local"
    database_url: str = "sqlite:///vaultpro_identity.db"

    appwrite_endpoint: str = ""
    appwrite_project_id: str = ""
    appwrite_api_key: str = ""
    appwrite_database_id: str = ""
    appwrite_users_collection_id: str = ""
    appwrite_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # OTP (local provider)
    # ------------------------------------------------------------------

    otp_length: int = 6
    otp_expire_seconds: int = 15 * 60
    otp_max_attempts: int = 5
    # Appwrite's default session length is one year.
    session_expire_seconds: int = 365 * 24 * 3600

    otp_delivery: Literal["log", "smtp"] = "log"
    otp_email_subject: str = "Your VaultPro verification code"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""
    smtp_use_tls: bool = True

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    otp_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    avatar_placeholder_url: str = "https://api.dicebear.com/9.x/initials/svg?seed={name}"

    demo_account_email: str = "demo@demo.com"
    demo_account_password: str = "demo@123"
    demo_account_name: str = "Demo User"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Pending OTP codes and sessions of the local provider will not
            survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_appwrite(self) -> "Settings":
        """Fail fast when the Appwrite backend is selected but not configured."""
        if self.identity_backend == "appwrite":
            missing = [
                name
                for name in (
                    "appwrite_endpoint",
                    "appwrite_project_id",
                    "appwrite_api_key",
                    "appwrite_database_id",
                    "appwrite_users_collection_id",
                )
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"IDENTITY_BACKEND=appwrite requires: {', '.join(m.upper() for m in missing)}")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
