"""Conversation listing and detail fetch over the Gmail threads API.

Provides helpers for:
- Normalizing Gmail thread responses into ``ConversationSummary`` models
- Normalizing messages (headers plus decoded body) into ``MessageDetail``
- The ``ThreadSynchronizer`` that lists summaries with a bounded metadata
  fan-out and fetches full conversation detail
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import structlog

from inboxsync.domain.errors import AuthError, MailSyncError, NotFoundError
from inboxsync.domain.models import (
    ConversationDetail,
    ConversationSummary,
    Credential,
    MessageDetail,
)
from inboxsync.domain.types import (
    MISSING_SUBJECT,
    UNREAD_LABEL,
    MailCategory,
    query_for_category,
)
from inboxsync.mail.client import ClientFactory
from inboxsync.mail.headers import (
    HeaderSet,
    extract_display_name,
    extract_email,
    parse_address,
    parse_address_list,
    parse_header_date,
)
from inboxsync.mail.parser import extract_body, part_from_payload
from inboxsync.observability.metrics import CONVERSATION_FETCH_FAILURES

logger = structlog.get_logger()


def _headers_of(message: dict[str, Any]) -> HeaderSet:
    return HeaderSet.from_payload((message.get("payload") or {}).get("headers"))


def _message_date(message: dict[str, Any], headers: HeaderSet) -> datetime:
    """Date header, else Gmail's ``internalDate`` (ms since epoch), else now."""
    parsed = parse_header_date(headers.get("Date"))
    if parsed is not None:
        return parsed
    internal_date = message.get("internalDate")
    if internal_date:
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=UTC)
        except (TypeError, ValueError, OverflowError):
            pass
    return datetime.now(tz=UTC)


def parse_thread(thread: dict[str, Any]) -> ConversationSummary | None:
    """Build a ``ConversationSummary`` from a Gmail thread resource.

    The subject comes from the first message; unread state, sender and date
    from the last one.  Participants are the deduplicated addresses of every
    message's From and To headers.

    Args:
        thread: A ``threads.get`` response (metadata or full format).

    Returns:
        The summary, or ``None`` when the thread has no messages.
    """
    messages: list[dict[str, Any]] = thread.get("messages") or []
    if not messages:
        return None

    first_headers = _headers_of(messages[0])
    last_message = messages[-1]
    last_headers = _headers_of(last_message)

    participants: dict[str, None] = {}
    for message in messages:
        headers = _headers_of(message)
        sender = headers.get("From")
        if sender:
            participants.setdefault(extract_email(sender), None)
        for address in parse_address_list(headers.get("To")):
            participants.setdefault(address, None)

    return ConversationSummary(
        id=str(thread.get("id", "")),
        subject=first_headers.get("Subject") or MISSING_SUBJECT,
        snippet=thread.get("snippet") or last_message.get("snippet") or "",
        participants=list(participants),
        last_message_at=_message_date(last_message, last_headers),
        unread=UNREAD_LABEL in (last_message.get("labelIds") or []),
        message_count=len(messages),
        last_sender=last_headers.get("From") or "",
    )


def parse_message(message: dict[str, Any]) -> MessageDetail | None:
    """Build a ``MessageDetail`` from a full-format Gmail message.

    Returns ``None`` for a message without a ``payload``.
    """
    payload = message.get("payload")
    if not payload:
        return None

    headers = HeaderSet.from_payload(payload.get("headers"))
    sender = headers.get("From") or ""
    address = parse_address(sender)
    extracted = extract_body(part_from_payload(payload))

    return MessageDetail(
        id=str(message.get("id", "")),
        conversation_id=str(message.get("threadId", "")),
        sender=sender,
        sender_name=extract_display_name(sender) or address.email,
        sender_initials=address.initials,
        to=parse_address_list(headers.get("To")),
        subject=headers.get("Subject") or MISSING_SUBJECT,
        date=_message_date(message, headers),
        body=extracted.body,
        is_rich=extracted.is_rich,
    )


class ThreadSynchronizer:
    """Lists and fetches Gmail conversations on demand.

    Args:
        client_factory: Builds a ``GmailClient`` for a credential.  Called once
            per operation, in a worker thread since building the discovery
            client blocks, so no client outlives the request that needed it.
        max_concurrency: Upper bound on concurrent per-thread metadata
            fetches during ``list_summaries``.
    """

    def __init__(self, client_factory: ClientFactory, max_concurrency: int = 5) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._client_factory = client_factory
        self._max_concurrency = max_concurrency

    async def list_summaries(
        self,
        credential: Credential,
        max_results: int = 20,
        category: str | MailCategory = MailCategory.FOCUS,
    ) -> list[ConversationSummary]:
        """List conversation summaries for an inbox category.

        Per-thread metadata fetches run concurrently under a semaphore.  A
        thread whose fetch fails is dropped and logged so one bad thread
        cannot hide the rest; an ``AuthError`` fails the whole call, and so
        does a batch in which every fetch failed.

        Args:
            credential: A usable credential.
            max_results: Maximum number of conversations to list.
            category: A ``MailCategory`` value; unknown values list the
                unread-primary view.

        Returns:
            Summaries in the order Gmail listed the threads.

        Raises:
            AuthError: If Gmail rejects the access token.
            ProviderError: If listing fails or every metadata fetch fails.
        """
        client = await asyncio.to_thread(self._client_factory, credential)
        query = query_for_category(category)
        thread_ids = await asyncio.to_thread(client.list_thread_ids, query, max_results)
        log = logger.bind(user_id=credential.user_id, query=query)
        if not thread_ids:
            log.info("No conversations matched")
            return []

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def fetch(thread_id: str) -> ConversationSummary | None:
            async with semaphore:
                thread = await asyncio.to_thread(client.get_thread_metadata, thread_id)
            return parse_thread(thread)

        results = await asyncio.gather(
            *(fetch(thread_id) for thread_id in thread_ids),
            return_exceptions=True,
        )

        summaries: list[ConversationSummary] = []
        failures: list[MailSyncError] = []
        for thread_id, result in zip(thread_ids, results, strict=True):
            if isinstance(result, AuthError):
                raise result
            if isinstance(result, MailSyncError):
                CONVERSATION_FETCH_FAILURES.inc()
                log.warning(
                    "Dropping conversation after fetch failure",
                    thread_id=thread_id,
                    error=str(result),
                )
                failures.append(result)
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                summaries.append(result)

        if failures and len(failures) == len(thread_ids):
            raise failures[0]

        log.info("Conversations listed", listed=len(thread_ids), returned=len(summaries))
        return summaries

    async def get_detail(self, credential: Credential, thread_id: str) -> ConversationDetail | None:
        """Fetch a conversation with every message decoded, oldest first.

        Args:
            credential: A usable credential.
            thread_id: The Gmail thread ID.

        Returns:
            The summary and messages, or ``None`` when the conversation does
            not exist or has no messages.

        Raises:
            AuthError: If Gmail rejects the access token.
            ProviderError: On any other Gmail failure.
        """
        client = await asyncio.to_thread(self._client_factory, credential)
        try:
            thread = await asyncio.to_thread(client.get_thread_full, thread_id)
        except NotFoundError:
            logger.info("Conversation not found", thread_id=thread_id)
            return None

        summary = parse_thread(thread)
        if summary is None:
            logger.info("Conversation has no messages", thread_id=thread_id)
            return None

        messages = [
            detail
            for detail in (parse_message(m) for m in thread.get("messages") or [])
            if detail is not None
        ]
        return ConversationDetail(summary=summary, messages=messages)
