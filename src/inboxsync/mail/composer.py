"""Outbound message construction and submission.

Builds the RFC 2822 message by hand (headers, blank line, body, CRLF line
endings), encodes it as unpadded base64url, and submits it through
``messages.send``.  Replies are correlated to the original message via
``In-Reply-To`` / ``References`` and filed into the original thread.
"""

from __future__ import annotations

import asyncio
from email.header import Header
from email.utils import formataddr, getaddresses

import structlog

from inboxsync.domain.errors import ComposeFailure, ProviderError
from inboxsync.domain.models import Credential, OutboundMessageRequest, SendResult
from inboxsync.domain.types import OUTBOUND_DEFAULT_SUBJECT
from inboxsync.mail.client import ClientFactory
from inboxsync.mail.headers import HeaderSet
from inboxsync.mail.parser import encode_base64url
from inboxsync.mail.threading import build_reply_headers, derive_reply_subject, get_reply_context

logger = structlog.get_logger()

CRLF = "\r\n"
CONTENT_TYPE = "text/html; charset=utf-8"
THREADING_HEADERS = ("In-Reply-To", "References")


def _single_line(value: str) -> str:
    """Collapse CR/LF so a value cannot inject extra headers."""
    return " ".join(value.splitlines()).strip()


def _encode_recipients(to: str) -> str:
    """RFC 2047 encode non-ASCII display names, leaving addresses intact."""
    to = _single_line(to)
    if to.isascii():
        return to
    pairs = [(name, addr) for name, addr in getaddresses([to]) if addr]
    # formataddr only encodes names; internationalized addresses go out as given.
    if not pairs or not all(addr.isascii() for _, addr in pairs):
        return to
    return ", ".join(formataddr(pair, charset="utf-8") for pair in pairs)


def _encode_subject(subject: str) -> str:
    subject = _single_line(subject)
    if subject.isascii():
        return subject
    return Header(subject, "utf-8").encode(linesep=CRLF)


def build_raw_message(
    to: str,
    subject: str,
    body: str,
    threading_headers: dict[str, str] | None = None,
) -> str:
    """Assemble the raw RFC 2822 message text.

    Args:
        to: Recipient address string; non-ASCII display names are RFC 2047
            encoded.
        subject: Subject line; non-ASCII subjects are RFC 2047 encoded.
        body: HTML body.
        threading_headers: Optional ``In-Reply-To`` / ``References`` values.

    Returns:
        Header lines, a blank line and the body, joined with CRLF.
    """
    headers = HeaderSet(
        [
            ("To", _encode_recipients(to)),
            ("Subject", _encode_subject(subject)),
            ("Content-Type", CONTENT_TYPE),
            ("MIME-Version", "1.0"),
        ]
    )
    for name in THREADING_HEADERS:
        value = (threading_headers or {}).get(name)
        if value:
            headers.add(name, _single_line(value))

    lines = [f"{name}: {value}" for name, value in headers]
    return CRLF.join([*lines, "", body])


def encode_message(raw: str) -> str:
    """Encode a raw message for the Gmail ``raw`` field (base64url, no padding)."""
    return encode_base64url(raw.encode("utf-8"))


class MessageComposer:
    """Composes and sends messages, threading replies onto their originals.

    Args:
        client_factory: Builds a ``GmailClient`` for a credential.
    """

    def __init__(self, client_factory: ClientFactory) -> None:
        self._client_factory = client_factory

    async def send(self, credential: Credential, request: OutboundMessageRequest) -> SendResult:
        """Build, encode and submit *request*.

        When ``in_reply_to_id`` is set, the original message's headers are
        fetched first: its ``Message-ID`` becomes ``In-Reply-To`` and ends
        the ``References`` chain, and without an explicit subject the reply
        subject is derived from the original's.

        Args:
            credential: A usable credential.
            request: The message to send.

        Returns:
            The Gmail message ID (and thread ID) of the sent message.

        Raises:
            NotFoundError: If the message being replied to does not exist.
            ComposeFailure: If Gmail rejects the message.
            AuthError: If Gmail rejects the access token.
        """
        client = await asyncio.to_thread(self._client_factory, credential)
        log = logger.bind(user_id=credential.user_id, conversation_id=request.conversation_id)

        subject = request.subject
        threading_headers: dict[str, str] = {}
        if request.references_id:
            threading_headers["References"] = request.references_id

        if request.in_reply_to_id:
            ctx = await asyncio.to_thread(get_reply_context, client, request.in_reply_to_id)
            threading_headers = build_reply_headers(ctx, request.references_id)
            if not subject and ctx.subject:
                subject = derive_reply_subject(ctx.subject)
            if not ctx.message_id_header:
                log.warning("Replied-to message has no Message-ID", message_id=request.in_reply_to_id)

        raw = encode_message(
            build_raw_message(
                to=request.to,
                subject=subject or OUTBOUND_DEFAULT_SUBJECT,
                body=request.body,
                threading_headers=threading_headers,
            )
        )

        try:
            response = await asyncio.to_thread(client.send_raw, raw, request.conversation_id)
        except ProviderError as exc:
            log.warning("Gmail rejected outbound message", status=exc.status, error=str(exc))
            raise ComposeFailure(str(exc), status=exc.status) from exc

        message_id = response.get("id")
        if not message_id:
            raise ComposeFailure("Gmail accepted the message but returned no id")

        log.info("Message sent", message_id=message_id, reply=bool(request.in_reply_to_id))
        return SendResult(message_id=str(message_id), conversation_id=response.get("threadId"))
