"""Gmail API client wrapper for listing, fetching, and sending mail.

Provides the ``GmailClient`` class that encapsulates the Gmail API calls the
sync layer needs, and ``create_gmail_client`` which builds one per
credential.  No client is shared at module level.

Every ``execute()`` runs over its own ``AuthorizedHttp`` because httplib2
connections are not thread safe and fetches fan out across worker threads.
Provider failures are translated into the typed errors in
``inboxsync.domain.errors``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import google.auth.exceptions
import httplib2
import structlog
from google.oauth2.credentials import Credentials as GoogleCredentials
from google_auth_httplib2 import AuthorizedHttp  # type: ignore[import-untyped]
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from inboxsync.domain.errors import AuthError, NotFoundError, ProviderError
from inboxsync.domain.models import Credential
from inboxsync.mail.headers import HeaderSet

logger = structlog.get_logger()

METADATA_HEADERS: list[str] = ["From", "To", "Subject", "Date"]

HttpFactory = Callable[[], Any]


def translate_http_error(exc: HttpError, operation: str, resource_id: str = "") -> Exception:
    """Map a Gmail ``HttpError`` to the matching domain error.

    401 becomes ``AuthError``, 404 becomes ``NotFoundError`` and every other
    status becomes ``ProviderError`` carrying the provider's message.
    """
    status = exc.resp.status
    reason = getattr(exc, "reason", None) or str(exc)
    if status == 401:
        return AuthError(f"Gmail rejected the access token during {operation}: {reason}")
    if status == 404:
        return NotFoundError(resource_id or operation, reason)
    return ProviderError(f"Gmail {operation} failed: {reason}", status=status)


class GmailClient:
    """Wrapper around the Gmail API service for sync operations.

    All methods are synchronous and operate through the provided Gmail API
    service resource; callers in async code run them via
    ``asyncio.to_thread``.

    Args:
        service: A Gmail API v1 service resource.
        http_factory: Optional zero-argument callable returning a fresh
            authorized HTTP object for each request.  When ``None`` the
            service's own transport is used.
    """

    def __init__(self, service: Any, http_factory: HttpFactory | None = None) -> None:
        self._service = service
        self._http_factory = http_factory

    def _execute(self, request: Any, operation: str, resource_id: str = "") -> dict[str, Any]:
        try:
            if self._http_factory is not None:
                result = request.execute(http=self._http_factory())
            else:
                result = request.execute()
        except HttpError as exc:
            logger.warning(
                "Gmail API call failed",
                operation=operation,
                status=exc.resp.status,
                resource_id=resource_id or None,
            )
            raise translate_http_error(exc, operation, resource_id) from exc
        except google.auth.exceptions.RefreshError as exc:
            raise AuthError(f"Access token rejected during {operation}: {exc}") from exc
        except (httplib2.HttpLib2Error, google.auth.exceptions.TransportError, OSError) as exc:
            logger.warning("Gmail transport error", operation=operation, error=str(exc))
            raise ProviderError(f"Gmail {operation} transport error: {exc}") from exc
        return dict(result or {})

    def list_thread_ids(self, query: str, max_results: int) -> list[str]:
        """Return thread IDs matching *query*, in the order Gmail returns them.

        Args:
            query: Gmail search query (the ``q`` parameter).
            max_results: Maximum number of threads to return.

        Returns:
            A list of Gmail thread IDs.  Empty when nothing matches.
        """
        response = self._execute(
            self._service.users()
            .threads()
            .list(userId="me", maxResults=max_results, q=query),
            "threads.list",
        )
        return [t["id"] for t in response.get("threads", []) if t.get("id")]

    def get_thread_metadata(self, thread_id: str) -> dict[str, Any]:
        """Fetch a thread's labels and From/To/Subject/Date headers only."""
        return self._execute(
            self._service.users()
            .threads()
            .get(
                userId="me",
                id=thread_id,
                format="metadata",
                metadataHeaders=METADATA_HEADERS,
            ),
            "threads.get",
            thread_id,
        )

    def get_thread_full(self, thread_id: str) -> dict[str, Any]:
        """Fetch a thread including every message's full part tree."""
        return self._execute(
            self._service.users().threads().get(userId="me", id=thread_id, format="full"),
            "threads.get",
            thread_id,
        )

    def get_message_headers(self, message_id: str, names: list[str]) -> HeaderSet:
        """Fetch selected headers of a single message.

        Args:
            message_id: The Gmail message ID.
            names: Header names to request.

        Returns:
            The returned headers as a ``HeaderSet``.
        """
        message = self._execute(
            self._service.users()
            .messages()
            .get(userId="me", id=message_id, format="metadata", metadataHeaders=names),
            "messages.get",
            message_id,
        )
        return HeaderSet.from_payload((message.get("payload") or {}).get("headers"))

    def send_raw(self, raw: str, thread_id: str | None = None) -> dict[str, Any]:
        """Send a base64url-encoded RFC 2822 message.

        Args:
            raw: The encoded message.
            thread_id: Gmail thread to file the message into, if any.

        Returns:
            The Gmail API response dict (contains ``id`` and ``threadId``).
        """
        payload: dict[str, Any] = {"raw": raw}
        if thread_id:
            payload["threadId"] = thread_id
        return self._execute(
            self._service.users().messages().send(userId="me", body=payload),
            "messages.send",
        )


def create_gmail_client(credential: Credential, timeout: float = 30.0) -> GmailClient:
    """Build a ``GmailClient`` authorized with *credential*'s access token.

    Refreshing is the ``CredentialManager``'s job, so the Google credentials
    object carries the access token only.

    Args:
        credential: A credential that has passed ``ensure_valid``.
        timeout: Socket timeout in seconds for every Gmail request.

    Returns:
        A ready ``GmailClient``.
    """
    google_creds = GoogleCredentials(token=credential.access_token)  # type: ignore[no-untyped-call]
    service = build("gmail", "v1", credentials=google_creds, cache_discovery=False)

    def http_factory() -> AuthorizedHttp:
        return AuthorizedHttp(google_creds, http=httplib2.Http(timeout=timeout))

    return GmailClient(service, http_factory=http_factory)


ClientFactory = Callable[[Credential], GmailClient]
