"""Prometheus metrics instrumentation for the mail sync service.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count.
- ``TOKEN_REFRESHES``: Counter of token endpoint calls by outcome.
- ``CONVERSATION_FETCH_FAILURES``: Counter of conversations dropped from a
  listing because their metadata fetch failed.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

TOKEN_REFRESHES: Counter = Counter(
    "inboxsync_token_refreshes_total",
    "Number of OAuth token refresh calls made",
    ["outcome"],
)

CONVERSATION_FETCH_FAILURES: Counter = Counter(
    "inboxsync_conversation_fetch_failures_total",
    "Conversations dropped from a listing after a failed metadata fetch",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
