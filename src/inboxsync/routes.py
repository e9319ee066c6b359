"""HTTP routes exposing conversation listing, detail, and sending.

The upstream session layer authenticates the user and forwards their
identity in the ``X-User-Id`` header; the stored credential for that user is
loaded and refreshed on every request.  Typed failures map to structured
JSON errors (``{"error": ...}``) by ``register_error_handlers``.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse

from inboxsync.domain.errors import AuthError, MailSyncError, NotFoundError, ProviderError
from inboxsync.domain.models import Credential, OutboundMessageRequest
from inboxsync.domain.types import DEFAULT_CATEGORY
from inboxsync.mail.service import MailService

logger = structlog.get_logger()

router = APIRouter()


def _mail_service(request: Request) -> MailService:
    service: MailService = request.app.state.services["mail_service"]
    return service


async def _user_credential(
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> Credential:
    if not x_user_id:
        raise AuthError("Unauthorized - please sign in")
    structlog.contextvars.bind_contextvars(user_id=x_user_id)
    return await _mail_service(request).credential_for(x_user_id)


@router.get("/threads")
async def list_threads(
    request: Request,
    credential: Annotated[Credential, Depends(_user_credential)],
    category: str = DEFAULT_CATEGORY.value,
    max_results: Annotated[int | None, Query(ge=1, le=500)] = None,
) -> dict[str, Any]:
    """List conversation summaries for an inbox category."""
    summaries = await _mail_service(request).list_summaries(credential, max_results, category)
    return {"threads": summaries}


@router.get("/threads/{thread_id}")
async def get_thread(
    request: Request,
    thread_id: str,
    credential: Annotated[Credential, Depends(_user_credential)],
) -> dict[str, Any]:
    """Fetch a conversation with decoded messages."""
    detail = await _mail_service(request).get_detail(credential, thread_id)
    if detail is None:
        raise NotFoundError(thread_id, "Thread not found")
    return {"thread": detail.summary, "messages": detail.messages}


@router.post("/messages/send")
async def send_message(
    request: Request,
    outbound: OutboundMessageRequest,
    credential: Annotated[Credential, Depends(_user_credential)],
) -> dict[str, Any]:
    """Send a new message or a threaded reply."""
    result = await _mail_service(request).send(credential, outbound)
    return {
        "success": True,
        "message_id": result.message_id,
        "conversation_id": result.conversation_id,
    }


def _status_for(exc: MailSyncError) -> int:
    if isinstance(exc, AuthError):
        return 401
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ProviderError):
        return 502
    return 500


def register_error_handlers(app: FastAPI) -> None:
    """Map the typed mail errors onto HTTP responses.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(MailSyncError)
    async def mail_error_handler(request: Request, exc: MailSyncError) -> JSONResponse:
        status_code = _status_for(exc)
        log = logger.bind(path=request.url.path, error_type=type(exc).__name__)
        if status_code >= 500:
            log.error("Mail request failed", error=str(exc), status_code=status_code)
        else:
            log.info("Mail request rejected", error=str(exc), status_code=status_code)
        return JSONResponse(content={"error": str(exc)}, status_code=status_code)
