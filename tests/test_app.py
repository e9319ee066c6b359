"""Tests for application entry point: structlog config, service initialization, and app creation."""

from __future__ import annotations

import inspect
import sqlite3
from pathlib import Path

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient
from structlog_sentry import SentryProcessor

from inboxsync.app import configure_logging, create_app, initialize_services, main
from inboxsync.auth.store import SQLiteCredentialStore
from inboxsync.config import Settings
from inboxsync.mail.service import MailService


def _reset_structlog() -> None:
    """Reset structlog so cached loggers don't leak between tests."""
    structlog.reset_defaults()


def _base_settings(tmp_path: Path, **overrides) -> Settings:
    """Build a Settings instance pointing the credential DB to tmp_path."""
    defaults = {"credential_db_path": tmp_path / "credentials.db"}
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)  # type: ignore[call-arg]


class TestConfigureLogging:
    """Tests for structlog configuration in dev and production modes."""

    def test_development_mode_uses_console_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=False)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in processors)

    def test_production_mode_uses_json_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.processors.JSONRenderer) for p in processors)

    def test_sentry_processor_only_when_enabled(self) -> None:
        _reset_structlog()
        configure_logging()
        assert not any(
            isinstance(p, SentryProcessor) for p in structlog.get_config()["processors"]
        )

        configure_logging(sentry_enabled=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, SentryProcessor) for p in processors)
        _reset_structlog()

    def test_binds_service_name(self) -> None:
        _reset_structlog()
        structlog.contextvars.clear_contextvars()
        configure_logging()
        assert structlog.contextvars.get_contextvars()["service"] == "inboxsync"
        structlog.contextvars.clear_contextvars()


class TestInitializeServices:
    """Tests for service initialization."""

    def test_creates_credential_db_and_mail_service(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        db_path = tmp_path / "nested" / "credentials.db"
        settings = _base_settings(tmp_path, credential_db_path=db_path)

        services = initialize_services(settings)

        try:
            assert db_path.exists()
            assert isinstance(services["credential_store"], SQLiteCredentialStore)
            assert isinstance(services["mail_service"], MailService)
            assert services["_settings"] is settings
        finally:
            services["credential_conn"].close()


class TestCreateApp:
    """Tests for the FastAPI app factory."""

    def test_registers_routes(self, tmp_path: Path) -> None:
        services = {"_settings": _base_settings(tmp_path)}
        app = create_app(services)

        assert isinstance(app, FastAPI)
        paths = {route.path for route in app.routes}
        assert {
            "/threads",
            "/threads/{thread_id}",
            "/messages/send",
            "/health",
            "/ready",
            "/metrics",
        } <= paths

    def test_lifespan_closes_credential_db(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        services = initialize_services(_base_settings(tmp_path))
        app = create_app(services)

        with TestClient(app) as client:
            assert client.get("/ready").status_code == 200

        with pytest.raises(sqlite3.ProgrammingError, match="closed"):
            services["credential_conn"].execute("SELECT 1")

    def test_main_is_coroutine(self) -> None:
        assert inspect.iscoroutinefunction(main)
