"""Domain enumerations and Gmail query mappings for the mail sync layer."""

from enum import StrEnum


class MailCategory(StrEnum):
    """Inbox views a caller can list conversations for."""

    FOCUS = "focus"
    OTHER = "other"
    PEOPLE = "people"
    NEWSLETTERS = "newsletters"
    NOTIFICATIONS = "notifications"
    SENT = "sent"
    DRAFTS = "drafts"
    ALL = "all"


# Gmail search queries backing each category
CATEGORY_QUERIES: dict[MailCategory, str] = {
    MailCategory.FOCUS: "is:inbox is:unread category:primary",
    MailCategory.OTHER: "is:inbox is:unread -category:primary",
    MailCategory.PEOPLE: "is:inbox category:primary",
    MailCategory.NEWSLETTERS: "is:inbox (category:promotions OR category:updates)",
    MailCategory.NOTIFICATIONS: "is:inbox category:updates",
    MailCategory.SENT: "is:sent",
    MailCategory.DRAFTS: "is:draft",
    MailCategory.ALL: "is:inbox",
}

DEFAULT_CATEGORY = MailCategory.FOCUS

UNREAD_LABEL = "UNREAD"
RICH_TEXT_TYPE = "text/html"
PLAIN_TEXT_TYPE = "text/plain"

REPLY_PREFIX = "Re:"
MISSING_SUBJECT = "(No Subject)"
OUTBOUND_DEFAULT_SUBJECT = "No Subject"


def query_for_category(category: str | MailCategory | None) -> str:
    """Return the Gmail search query for *category*.

    Unknown or empty categories fall back to the unread-primary view.

    Args:
        category: A ``MailCategory`` or its string value.

    Returns:
        The Gmail ``q`` parameter for ``threads.list``.
    """
    try:
        resolved = MailCategory(category) if category else DEFAULT_CATEGORY
    except ValueError:
        resolved = DEFAULT_CATEGORY
    return CATEGORY_QUERIES[resolved]
