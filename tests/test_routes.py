"""Tests for the mail HTTP routes and error mapping.

The ``MailService`` is replaced by a ``MagicMock`` with ``AsyncMock``
methods so the routes are exercised without Gmail or a token endpoint.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from inboxsync.app import create_app
from inboxsync.config import Settings
from inboxsync.domain.errors import (
    AuthError,
    ComposeFailure,
    NotFoundError,
    ProviderError,
    RefreshFailure,
)
from inboxsync.domain.models import (
    ConversationDetail,
    ConversationSummary,
    Credential,
    MessageDetail,
    OutboundMessageRequest,
    SendResult,
)
from inboxsync.mail.service import MailService

SENT_AT = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)
USER_HEADERS = {"X-User-Id": "jane@example.com"}

CREDENTIAL = Credential(
    user_id="jane@example.com",
    access_token="access",
    refresh_token="refresh",
    expires_at=SENT_AT + timedelta(hours=1),
)

SUMMARY = ConversationSummary(
    id="t1",
    subject="Hello",
    snippet="Hi there",
    participants=["bob@example.com", "jane@example.com"],
    last_message_at=SENT_AT,
    unread=True,
    message_count=1,
    last_sender="Bob <bob@example.com>",
)

MESSAGE = MessageDetail(
    id="m1",
    conversation_id="t1",
    sender="Bob <bob@example.com>",
    sender_name="Bob",
    to=["jane@example.com"],
    subject="Hello",
    date=SENT_AT,
    body="<p>Hi there</p>",
    is_rich=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_mail_service() -> MagicMock:
    service = MagicMock(spec=MailService)
    service.credential_for = AsyncMock(return_value=CREDENTIAL)
    service.list_summaries = AsyncMock(return_value=[SUMMARY])
    service.get_detail = AsyncMock(
        return_value=ConversationDetail(summary=SUMMARY, messages=[MESSAGE])
    )
    service.send = AsyncMock(return_value=SendResult(message_id="s1", conversation_id="t1"))
    return service


def _make_app(mail_service: MagicMock) -> FastAPI:
    settings = Settings(_env_file=None)  # type: ignore[call-arg]
    return create_app({"_settings": settings, "mail_service": mail_service})


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class TestUserIdentity:
    """Requests must carry the signed-in user's identity."""

    def test_missing_user_header_is_401(self) -> None:
        service = _make_mail_service()
        client = TestClient(_make_app(service))

        response = client.get("/threads")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized - please sign in"}
        service.list_summaries.assert_not_awaited()

    def test_unknown_user_is_401(self) -> None:
        service = _make_mail_service()
        service.credential_for.side_effect = AuthError("No credential stored for 'x'")
        client = TestClient(_make_app(service))

        response = client.get("/threads", headers={"X-User-Id": "x"})

        assert response.status_code == 401

    def test_refresh_failure_is_401(self) -> None:
        service = _make_mail_service()
        service.credential_for.side_effect = RefreshFailure("jane@example.com", "invalid_grant")
        client = TestClient(_make_app(service))

        response = client.get("/threads", headers=USER_HEADERS)

        assert response.status_code == 401
        assert "invalid_grant" in response.json()["error"]


# ---------------------------------------------------------------------------
# GET /threads
# ---------------------------------------------------------------------------

class TestListThreads:
    """GET /threads."""

    def test_lists_default_category(self) -> None:
        service = _make_mail_service()
        client = TestClient(_make_app(service))

        response = client.get("/threads", headers=USER_HEADERS)

        assert response.status_code == 200
        threads = response.json()["threads"]
        assert [t["id"] for t in threads] == ["t1"]
        assert threads[0]["participants"] == ["bob@example.com", "jane@example.com"]
        service.credential_for.assert_awaited_once_with("jane@example.com")
        service.list_summaries.assert_awaited_once_with(CREDENTIAL, None, "focus")

    def test_category_and_limit_forwarded(self) -> None:
        service = _make_mail_service()
        client = TestClient(_make_app(service))

        client.get("/threads?category=sent&max_results=5", headers=USER_HEADERS)

        service.list_summaries.assert_awaited_once_with(CREDENTIAL, 5, "sent")

    def test_limit_out_of_range_is_422(self) -> None:
        client = TestClient(_make_app(_make_mail_service()))

        response = client.get("/threads?max_results=0", headers=USER_HEADERS)

        assert response.status_code == 422

    def test_provider_error_is_502(self) -> None:
        service = _make_mail_service()
        service.list_summaries.side_effect = ProviderError("Backend Error", status=500)
        client = TestClient(_make_app(service))

        response = client.get("/threads", headers=USER_HEADERS)

        assert response.status_code == 502
        assert response.json() == {"error": "Backend Error"}


# ---------------------------------------------------------------------------
# GET /threads/{thread_id}
# ---------------------------------------------------------------------------

class TestGetThread:
    """GET /threads/{thread_id}."""

    def test_returns_thread_and_messages(self) -> None:
        service = _make_mail_service()
        client = TestClient(_make_app(service))

        response = client.get("/threads/t1", headers=USER_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["thread"]["id"] == "t1"
        assert body["messages"][0]["body"] == "<p>Hi there</p>"
        assert body["messages"][0]["is_rich"] is True
        service.get_detail.assert_awaited_once_with(CREDENTIAL, "t1")

    def test_missing_thread_is_404(self) -> None:
        service = _make_mail_service()
        service.get_detail.return_value = None
        client = TestClient(_make_app(service))

        response = client.get("/threads/nope", headers=USER_HEADERS)

        assert response.status_code == 404
        assert response.json() == {"error": "Thread not found"}


# ---------------------------------------------------------------------------
# POST /messages/send
# ---------------------------------------------------------------------------

class TestSendMessage:
    """POST /messages/send."""

    def test_sends_reply(self) -> None:
        service = _make_mail_service()
        client = TestClient(_make_app(service))
        payload = {
            "to": "bob@example.com",
            "body": "<p>Thanks</p>",
            "conversation_id": "t1",
            "in_reply_to_id": "m1",
        }

        response = client.post("/messages/send", json=payload, headers=USER_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message_id": "s1", "conversation_id": "t1"}
        service.send.assert_awaited_once_with(CREDENTIAL, OutboundMessageRequest(**payload))

    def test_missing_body_is_422(self) -> None:
        service = _make_mail_service()
        client = TestClient(_make_app(service))

        response = client.post(
            "/messages/send", json={"to": "bob@example.com"}, headers=USER_HEADERS
        )

        assert response.status_code == 422
        service.send.assert_not_awaited()

    def test_compose_failure_is_502(self) -> None:
        service = _make_mail_service()
        service.send.side_effect = ComposeFailure("Invalid To header", status=400)
        client = TestClient(_make_app(service))

        response = client.post(
            "/messages/send", json={"to": "x", "body": "b"}, headers=USER_HEADERS
        )

        assert response.status_code == 502
        assert response.json() == {"error": "Invalid To header"}

    def test_missing_reply_target_is_404(self) -> None:
        service = _make_mail_service()
        service.send.side_effect = NotFoundError("m404")
        client = TestClient(_make_app(service))

        response = client.post(
            "/messages/send",
            json={"to": "bob@example.com", "body": "b", "in_reply_to_id": "m404"},
            headers=USER_HEADERS,
        )

        assert response.status_code == 404
