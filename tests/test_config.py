"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, production OAuth client gate, dev-mode
warnings, and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from inboxsync.config import Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------

class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.api_port == 8000
        assert s.credential_db_path == Path("data/credentials.db")
        assert s.token_uri == "https://oauth2.googleapis.com/token"
        assert s.token_expiry_skew_seconds == 0
        assert s.provider_timeout_seconds == 30.0
        assert s.max_concurrent_fetches == 5
        assert s.default_max_results == 20

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("API_PORT", "9090")
        monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "shh")
        monkeypatch.setenv("MAX_CONCURRENT_FETCHES", "12")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.api_port == 9090
        assert s.google_client_secret.get_secret_value() == "shh"
        assert s.max_concurrent_fetches == 12

    def test_secret_not_in_repr(self) -> None:
        s = Settings(_env_file=None, google_client_secret="shh")  # type: ignore[call-arg, arg-type]
        assert "shh" not in repr(s)

    def test_zero_concurrency_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_concurrent_fetches=0)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------

class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_validate_credentials_production_missing(self) -> None:
        """Production mode exits when the OAuth client is not configured."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            google_client_id="",
            google_client_secret="",  # type: ignore[arg-type]
        )

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(settings)

        assert exc_info.value.code == 1

    def test_validate_credentials_production_valid(self) -> None:
        """Production mode passes when client id and secret are set."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            google_client_id="client-id.apps.googleusercontent.com",
            google_client_secret="client-secret",  # type: ignore[arg-type]
        )

        validate_credentials(settings)

    def test_validate_credentials_dev_mode_warns(self) -> None:
        """Dev mode logs warnings but does NOT exit."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=False,
            google_client_id="",
            google_client_secret="",  # type: ignore[arg-type]
        )

        validate_credentials(settings)


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------

class TestGetSettingsCached:
    """Verify lru_cache on get_settings."""

    def test_get_settings_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Calling get_settings() twice returns the exact same object."""
        monkeypatch.delenv("PRODUCTION", raising=False)

        first = get_settings()
        second = get_settings()

        assert first is second
