"""OAuth credential lifecycle: expiry checks and serialized token refresh.

Provides:
- ``GoogleTokenRefresher``: calls the Google OAuth token endpoint with a
  refresh token over ``httpx``
- ``CredentialManager``: hands out credentials whose access token is still
  valid, refreshing at most once per expired credential even when many
  callers ask at the same time
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

import httpx
import structlog
from pydantic import ValidationError

from inboxsync.domain.errors import AuthError, RefreshFailure
from inboxsync.domain.models import Credential, TokenGrant
from inboxsync.observability.metrics import TOKEN_REFRESHES

logger = structlog.get_logger()

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


class TokenRefresher(Protocol):
    """Exchanges a refresh token for a new access token."""

    async def refresh(self, refresh_token: str) -> TokenGrant: ...


class CredentialStore(Protocol):
    """Persistence for credentials keyed by user identity."""

    def load(self, user_id: str) -> Credential | None: ...

    def save(self, credential: Credential) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class GoogleTokenRefresher:
    """Refresh access tokens against Google's OAuth 2.0 token endpoint.

    Args:
        client_id: OAuth client ID.
        client_secret: OAuth client secret.
        token_uri: Token endpoint URL.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport, used by tests.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_uri: str = DEFAULT_TOKEN_URI,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_uri = token_uri
        self._timeout = timeout
        self._transport = transport

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """POST a ``refresh_token`` grant and parse the reply.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response.
            pydantic.ValidationError: If the reply lacks ``access_token`` or
                ``expires_in``, or ``expires_in`` is not positive.
        """
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                self._token_uri,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": refresh_token,
                },
            )
            response.raise_for_status()
            return TokenGrant.model_validate(response.json())


def _describe_refresh_error(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        detail: str | None = None
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("error_description") or body.get("error")
        return f"token endpoint returned {exc.response.status_code}: {detail or exc.response.text}"
    return str(exc) or type(exc).__name__


@dataclass
class _RefreshOutcome:
    superseded_token: str
    credential: Credential


class CredentialManager:
    """Guarantees callers a non-expired credential or an explicit failure.

    Refresh attempts are serialized per ``user_id`` with an ``asyncio.Lock``.
    The outcome of the last refresh is remembered against the access token it
    replaced, so callers that queued behind an in-flight refresh receive its
    result instead of issuing their own token request.

    Args:
        refresher: Token endpoint client.
        store: Optional credential store; refreshed credentials (and failed
            ones) are written back to it.  A failed write is logged and does
            not change the result handed to the caller.
        clock: Returns the current instant; injectable for tests.
        expiry_skew: Treat tokens expiring within this window as expired.
    """

    def __init__(
        self,
        refresher: TokenRefresher,
        store: CredentialStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
        expiry_skew: timedelta = timedelta(0),
    ) -> None:
        self._refresher = refresher
        self._store = store
        self._clock = clock
        self._expiry_skew = expiry_skew
        self._locks: dict[str, asyncio.Lock] = {}
        self._outcomes: dict[str, _RefreshOutcome] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    def _settled(self, credential: Credential) -> Credential | None:
        """Return a credential to hand out without refreshing, if any applies."""
        outcome = self._outcomes.get(credential.user_id)
        if outcome is not None and credential.access_token in (
            outcome.superseded_token,
            outcome.credential.access_token,
        ):
            credential = outcome.credential

        if credential.failed:
            raise RefreshFailure(credential.user_id, credential.last_error or "credential failed")
        if credential.is_usable(self._clock(), self._expiry_skew):
            return credential
        return None

    async def ensure_valid(self, credential: Credential) -> Credential:
        """Return *credential* if still valid, otherwise a refreshed copy.

        Args:
            credential: The caller's current credential.

        Returns:
            A credential whose ``expires_at`` is in the future.

        Raises:
            RefreshFailure: If the credential already failed or the token
                endpoint rejects the refresh.
        """
        if credential.failed:
            raise RefreshFailure(credential.user_id, credential.last_error or "credential failed")
        if credential.is_usable(self._clock(), self._expiry_skew):
            return credential

        async with self._lock_for(credential.user_id):
            settled = self._settled(credential)
            if settled is not None:
                return settled
            return await self._refresh(credential)

    async def ensure_valid_for_user(self, user_id: str) -> Credential:
        """Load *user_id*'s stored credential and make sure it is usable.

        Raises:
            AuthError: If no credential is stored for the user.
            RefreshFailure: If the refresh fails.
        """
        if self._store is None:
            raise AuthError("No credential store configured")
        credential = await asyncio.to_thread(self._store.load, user_id)
        if credential is None:
            raise AuthError(f"No credential stored for '{user_id}'; sign-in required")
        return await self.ensure_valid(credential)

    async def _refresh(self, credential: Credential) -> Credential:
        log = logger.bind(user_id=credential.user_id)
        log.info("Refreshing access token")
        try:
            grant = await self._refresher.refresh(credential.refresh_token)
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            reason = _describe_refresh_error(exc)
            TOKEN_REFRESHES.labels(outcome="failure").inc()
            log.warning("Access token refresh failed", error=reason)
            failed = credential.model_copy(update={"last_error": reason})
            await self._remember(credential, failed)
            raise RefreshFailure(credential.user_id, reason) from exc

        refreshed = credential.model_copy(
            update={
                "access_token": grant.access_token,
                "refresh_token": grant.refresh_token or credential.refresh_token,
                "expires_at": self._clock() + timedelta(seconds=grant.expires_in),
                "last_error": None,
            }
        )
        TOKEN_REFRESHES.labels(outcome="success").inc()
        log.info("Access token refreshed", expires_at=refreshed.expires_at.isoformat())
        await self._remember(credential, refreshed)
        return refreshed

    async def _remember(self, previous: Credential, updated: Credential) -> None:
        self._outcomes[previous.user_id] = _RefreshOutcome(
            superseded_token=previous.access_token,
            credential=updated,
        )
        if self._store is None:
            return
        try:
            await asyncio.to_thread(self._store.save, updated)
        except sqlite3.Error as exc:
            # Callers keep the in-memory outcome even when the write is lost.
            logger.error(
                "Failed to persist credential",
                user_id=updated.user_id,
                failed=updated.failed,
                error=str(exc),
            )
