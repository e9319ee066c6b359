"""Request context middleware for the mail API.

Every response carries an ``X-Request-ID`` header, echoed from the caller or
generated here.  The ID, HTTP method and path are bound into structlog
contextvars so sync, refresh and send logs for one request can be joined.
"""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind per-request logging context and tag the response with its ID."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            service="inboxsync",
            request_id=request_id,
            http_method=request.method,
            http_path=request.url.path,
        )
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
