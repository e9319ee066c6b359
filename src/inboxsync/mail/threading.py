"""Reply context extraction and reply header management.

Provides helpers for:
- Fetching the threading headers of the message being replied to
- Normalizing reply subjects without double prefixing
- Building RFC 2822 ``In-Reply-To`` / ``References`` headers
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from inboxsync.domain.types import REPLY_PREFIX
from inboxsync.mail.client import GmailClient

REPLY_CONTEXT_HEADERS: list[str] = ["Message-ID", "Subject", "From"]


class ReplyContext(BaseModel):
    """Headers of the message a reply answers."""

    model_config = ConfigDict(frozen=True)

    gmail_message_id: str
    message_id_header: str  # RFC 2822 Message-ID header
    subject: str
    sender: str


def get_reply_context(client: GmailClient, message_id: str) -> ReplyContext:
    """Fetch the ``Message-ID``, ``Subject`` and ``From`` of a message.

    Args:
        client: A ``GmailClient`` for the replying user.
        message_id: The Gmail message ID being replied to.

    Returns:
        A ``ReplyContext``; absent headers become empty strings.

    Raises:
        NotFoundError: If the message does not exist.
    """
    headers = client.get_message_headers(message_id, REPLY_CONTEXT_HEADERS)
    return ReplyContext(
        gmail_message_id=message_id,
        message_id_header=headers.get("Message-ID") or "",
        subject=headers.get("Subject") or "",
        sender=headers.get("From") or "",
    )


def derive_reply_subject(subject: str) -> str:
    """Prefix *subject* with ``Re:`` unless it already starts with it.

    The check is case-sensitive: ``RE: x`` becomes ``Re: RE: x``.
    """
    if subject.startswith(REPLY_PREFIX):
        return subject
    return f"{REPLY_PREFIX} {subject}"


def build_reply_headers(ctx: ReplyContext, references: str | None = None) -> dict[str, str]:
    """Build the threading headers for a reply to *ctx*.

    ``References`` carries any earlier chain passed in *references*, followed
    by the replied-to ``Message-ID``.

    Args:
        ctx: The reply context from ``get_reply_context``.
        references: Existing ``References`` chain, if the caller has one.

    Returns:
        A dict with ``In-Reply-To`` and ``References``; empty when the
        original message carried no ``Message-ID``.
    """
    if not ctx.message_id_header:
        return {"References": references} if references else {}
    chain = " ".join(part for part in (references, ctx.message_id_header) if part)
    return {
        "In-Reply-To": ctx.message_id_header,
        "References": chain,
    }
