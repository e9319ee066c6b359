"""Tests for /health and /ready observability endpoints.

Uses FastAPI TestClient with in-memory SQLite connections to verify
liveness and readiness probes without external dependencies.
"""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from inboxsync.health import register_health_routes

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_app(services: dict | None = None) -> FastAPI:
    """Create a minimal FastAPI app with health routes and given services."""
    app = FastAPI()
    app.state.services = services or {}
    register_health_routes(app)
    return app


# ---------------------------------------------------------------------------
# /health (liveness)
# ---------------------------------------------------------------------------

class TestHealthEndpoint:
    """GET /health liveness probe."""

    def test_health_returns_200(self) -> None:
        client = TestClient(_make_app())

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


# ---------------------------------------------------------------------------
# /ready (readiness)
# ---------------------------------------------------------------------------

class TestReadyEndpoint:
    """GET /ready readiness probe."""

    def test_ready_when_services_ok(self) -> None:
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        client = TestClient(_make_app({"credential_conn": conn, "mail_service": object()}))

        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {"credential_db": "ok", "mail_service": "ok"},
        }
        conn.close()

    def test_not_ready_without_services(self) -> None:
        client = TestClient(_make_app({}))

        response = client.get("/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert body["checks"] == {"credential_db": "fail", "mail_service": "fail"}

    def test_not_ready_when_db_errors(self) -> None:
        conn = MagicMock()
        conn.execute.side_effect = sqlite3.OperationalError("database is locked")
        client = TestClient(_make_app({"credential_conn": conn, "mail_service": object()}))

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["credential_db"] == "fail"
