"""Shared pytest fixtures for the inboxsync test suite."""

from datetime import UTC, datetime, timedelta

import pytest

from inboxsync.domain.models import Credential

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """A fixed instant used as the current time."""
    return NOW


@pytest.fixture
def valid_credential() -> Credential:
    """A credential whose access token expires an hour after ``NOW``."""
    return Credential(
        user_id="jane@example.com",
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=NOW + timedelta(hours=1),
    )


@pytest.fixture
def expired_credential() -> Credential:
    """A credential whose access token expired a minute before ``NOW``."""
    return Credential(
        user_id="jane@example.com",
        access_token="access-old",
        refresh_token="refresh-1",
        expires_at=NOW - timedelta(minutes=1),
    )
