"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces OAuth client configuration in production mode.

IMPORTANT: This module has ZERO imports from the ``inboxsync`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    api_port: int = 8000
    sentry_dsn: str = ""

    # -- Credential store ------------------------------------------------------
    credential_db_path: Path = Path("data/credentials.db")

    # -- Google OAuth ----------------------------------------------------------
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")
    google_client_secrets_path: Path = Path("credentials.json")
    token_uri: str = "https://oauth2.googleapis.com/token"
    token_expiry_skew_seconds: int = Field(default=0, ge=0)

    # -- Gmail API -------------------------------------------------------------
    provider_timeout_seconds: float = Field(default=30.0, gt=0)
    max_concurrent_fetches: int = Field(default=5, ge=1)
    default_max_results: int = Field(default=20, ge=1, le=500)


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce OAuth client configuration at startup.

    Without a client id and secret no access token can ever be refreshed.
    In **production** mode the application exits with a clear error block;
    in **development** mode each problem is logged as a warning.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.google_client_id:
        errors.append("GOOGLE_CLIENT_ID is empty or not set")

    if not settings.google_client_secret.get_secret_value():
        errors.append("GOOGLE_CLIENT_SECRET is empty or not set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
