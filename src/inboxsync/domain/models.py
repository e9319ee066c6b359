"""Pydantic v2 models for credentials, conversations, and outbound mail."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Credential(BaseModel):
    """A per-user OAuth credential for the Gmail API.

    Only the ``CredentialManager`` produces updated instances.  A credential
    with ``last_error`` set is in the terminal *Failed* state and needs a
    fresh sign-in.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    access_token: str = Field(repr=False)
    refresh_token: str = Field(repr=False)
    expires_at: datetime
    last_error: str | None = None

    @field_validator("expires_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat naive expiry instants as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def failed(self) -> bool:
        return self.last_error is not None

    def is_usable(self, now: datetime, skew: timedelta = timedelta(0)) -> bool:
        """Return ``True`` if the access token can be handed to a caller at *now*."""
        return not self.failed and now + skew < self.expires_at


class TokenGrant(BaseModel):
    """Successful reply from the OAuth token endpoint."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    expires_in: int = Field(gt=0)
    refresh_token: str | None = Field(default=None, repr=False)


class ConversationSummary(BaseModel):
    """Snapshot of a Gmail thread for list views.

    ``participants`` holds every address seen in the From/To headers of the
    thread's messages, deduplicated in first-seen order.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    subject: str
    snippet: str
    participants: list[str]
    last_message_at: datetime
    unread: bool
    message_count: int
    last_sender: str


class MessageDetail(BaseModel):
    """A single decoded message within a conversation."""

    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    sender: str  # raw From header value
    sender_name: str
    sender_initials: str = ""  # avatar initials of the parsed sender
    to: list[str]
    subject: str
    date: datetime
    body: str
    is_rich: bool


class ConversationDetail(BaseModel):
    """A conversation summary together with its messages, oldest first."""

    model_config = ConfigDict(frozen=True)

    summary: ConversationSummary
    messages: list[MessageDetail]


class OutboundMessageRequest(BaseModel):
    """A message to send, optionally threaded as a reply.

    ``in_reply_to_id`` is the Gmail message ID being answered; its
    ``Message-ID`` header is looked up before sending.  ``references_id`` is
    an RFC 2822 ``References`` value carried ahead of that Message-ID.
    """

    model_config = ConfigDict(frozen=True)

    to: str = Field(min_length=1)
    subject: str | None = None
    body: str = Field(min_length=1)
    conversation_id: str | None = None
    in_reply_to_id: str | None = None
    references_id: str | None = None


class SendResult(BaseModel):
    """Identifiers Gmail assigned to a sent message."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    conversation_id: str | None = None
