"""Caller-facing mail operations.

``MailService`` runs every operation through the ``CredentialManager`` first
so callers never hand an expired token to Gmail, then delegates to the
``ThreadSynchronizer`` or ``MessageComposer``.  Failures surface as the
typed errors in ``inboxsync.domain.errors``.
"""

from __future__ import annotations

from datetime import timedelta
from functools import partial

from inboxsync.auth.credentials import CredentialManager, CredentialStore, GoogleTokenRefresher
from inboxsync.config import Settings
from inboxsync.domain.models import (
    ConversationDetail,
    ConversationSummary,
    Credential,
    OutboundMessageRequest,
    SendResult,
)
from inboxsync.domain.types import MailCategory
from inboxsync.mail.client import create_gmail_client
from inboxsync.mail.composer import MessageComposer
from inboxsync.mail.threads import ThreadSynchronizer


class MailService:
    """Facade over credential refresh, conversation sync and composition."""

    def __init__(
        self,
        credentials: CredentialManager,
        synchronizer: ThreadSynchronizer,
        composer: MessageComposer,
        default_max_results: int = 20,
    ) -> None:
        self.credentials = credentials
        self._synchronizer = synchronizer
        self._composer = composer
        self._default_max_results = default_max_results

    @classmethod
    def from_settings(cls, settings: Settings, store: CredentialStore | None = None) -> MailService:
        """Wire a ``MailService`` against Google from application settings."""
        refresher = GoogleTokenRefresher(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret.get_secret_value(),
            token_uri=settings.token_uri,
            timeout=settings.provider_timeout_seconds,
        )
        manager = CredentialManager(
            refresher,
            store=store,
            expiry_skew=timedelta(seconds=settings.token_expiry_skew_seconds),
        )
        client_factory = partial(create_gmail_client, timeout=settings.provider_timeout_seconds)
        return cls(
            credentials=manager,
            synchronizer=ThreadSynchronizer(
                client_factory, max_concurrency=settings.max_concurrent_fetches
            ),
            composer=MessageComposer(client_factory),
            default_max_results=settings.default_max_results,
        )

    async def ensure_valid_credential(self, credential: Credential) -> Credential:
        return await self.credentials.ensure_valid(credential)

    async def credential_for(self, user_id: str) -> Credential:
        """Load and validate the stored credential for *user_id*."""
        return await self.credentials.ensure_valid_for_user(user_id)

    async def list_summaries(
        self,
        credential: Credential,
        max_results: int | None = None,
        category: str | MailCategory = MailCategory.FOCUS,
    ) -> list[ConversationSummary]:
        usable = await self.credentials.ensure_valid(credential)
        return await self._synchronizer.list_summaries(
            usable, max_results or self._default_max_results, category
        )

    async def get_detail(self, credential: Credential, thread_id: str) -> ConversationDetail | None:
        usable = await self.credentials.ensure_valid(credential)
        return await self._synchronizer.get_detail(usable, thread_id)

    async def send(self, credential: Credential, request: OutboundMessageRequest) -> SendResult:
        usable = await self.credentials.ensure_valid(credential)
        return await self._composer.send(usable, request)
