"""Domain-specific exception classes for the mail sync layer."""

from __future__ import annotations


class MailSyncError(Exception):
    """Base class for all typed failures raised by inboxsync."""


class AuthError(MailSyncError):
    """Raised when a credential is missing, unrecoverable, or rejected.

    Never retried automatically; callers should prompt re-authentication.
    """


class RefreshFailure(AuthError):
    """Raised when the token endpoint refresh attempt fails.

    Attributes:
        user_id: Identity of the credential that failed to refresh.
        cause: The underlying transport error or provider error text.
    """

    def __init__(self, user_id: str, cause: BaseException | str) -> None:
        self.user_id = user_id
        self.cause = cause
        super().__init__(f"Token refresh failed for '{user_id}': {cause}")


class NotFoundError(MailSyncError):
    """Raised when a conversation or message does not exist.

    Attributes:
        resource_id: The Gmail thread or message ID that was requested.
    """

    def __init__(self, resource_id: str, message: str | None = None) -> None:
        self.resource_id = resource_id
        super().__init__(message or f"'{resource_id}' was not found")


class ProviderError(MailSyncError):
    """Raised on a transport failure or non-2xx response from the Gmail API.

    Attributes:
        status: HTTP status code, or ``None`` for transport-level failures.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class ComposeFailure(ProviderError):
    """Raised when Gmail rejects an outbound message."""


class ParseError(MailSyncError):
    """Raised when a header or body payload cannot be decoded."""
