"""Application entry point serving the mail sync HTTP API.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error forwarding when ``SENTRY_DSN`` is set
- **Credential store** (SQLite) and the ``MailService`` facade
- **HTTP routes** for threads, thread detail and sending, plus health,
  readiness and Prometheus metrics endpoints
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from inboxsync.auth.store import SQLiteCredentialStore, init_credential_db
from inboxsync.config import Settings, get_settings, validate_credentials
from inboxsync.health import register_health_routes
from inboxsync.mail.service import MailService
from inboxsync.observability.metrics import setup_metrics
from inboxsync.observability.middleware import RequestIdMiddleware
from inboxsync.observability.sentry import get_sentry_processor, init_sentry
from inboxsync.routes import register_error_handlers, router

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR events to Sentry if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())
    shared_processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="inboxsync")


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the credential database and builds the ``MailService`` wired to
    Google with the configured timeouts and fan-out bound.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    db_path = settings.credential_db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    credential_conn = init_credential_db(db_path)
    services["credential_conn"] = credential_conn

    store = SQLiteCredentialStore(credential_conn)
    services["credential_store"] = store

    services["mail_service"] = MailService.from_settings(settings, store=store)
    logger.info(
        "MailService initialized",
        max_concurrent_fetches=settings.max_concurrent_fetches,
        provider_timeout_seconds=settings.provider_timeout_seconds,
    )

    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Log startup and close the credential database on shutdown."""
    logger.info("FastAPI application starting")
    yield
    conn = app.state.services.get("credential_conn")
    if conn is not None:
        conn.close()
        logger.info("Credential database connection closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with mail routes, health checks and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="inboxsync", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(router)
    register_error_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point: configure logging, build services, and serve.

    1. Configure logging (and Sentry when a DSN is set)
    2. Validate OAuth client configuration
    3. Initialize services and create the FastAPI app
    4. Run uvicorn until shutdown
    """
    settings = get_settings()
    sentry_enabled = init_sentry(settings.sentry_dsn, production=settings.production)
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("Application starting")

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.api_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
