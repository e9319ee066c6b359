"""Domain types, models, and errors for the mail sync layer."""

from inboxsync.domain.errors import (
    AuthError,
    ComposeFailure,
    MailSyncError,
    NotFoundError,
    ParseError,
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
    TokenGrant,
)
from inboxsync.domain.types import (
    CATEGORY_QUERIES,
    MailCategory,
    query_for_category,
)

__all__ = [
    "CATEGORY_QUERIES",
    "AuthError",
    "ComposeFailure",
    "ConversationDetail",
    "ConversationSummary",
    "Credential",
    "MailCategory",
    "MailSyncError",
    "MessageDetail",
    "NotFoundError",
    "OutboundMessageRequest",
    "ParseError",
    "ProviderError",
    "RefreshFailure",
    "SendResult",
    "TokenGrant",
    "query_for_category",
]
