"""Interactive Gmail OAuth2 sign-in for creating a user's first credential.

Runs the installed-app flow (local browser redirect) and converts the
resulting Google credentials into a ``Credential`` for the store.  Web
deployments create credentials in their own session layer instead.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import structlog
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow  # type: ignore[import-untyped]

from inboxsync.auth.credentials import CredentialStore
from inboxsync.domain.errors import AuthError
from inboxsync.domain.models import Credential

logger = structlog.get_logger()

DEFAULT_GMAIL_SCOPES: list[str] = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
]

# google-auth leaves ``expiry`` unset when the grant omits expires_in
_FALLBACK_LIFETIME = timedelta(hours=1)


def credential_from_google(user_id: str, creds: Credentials) -> Credential:
    """Convert google-auth ``Credentials`` into a domain ``Credential``.

    google-auth stores ``expiry`` as a naive UTC datetime.

    Raises:
        AuthError: If Google did not issue a refresh token.
    """
    if not creds.refresh_token:
        raise AuthError("Google did not return a refresh token; re-consent with offline access")
    expiry = creds.expiry or datetime.now(tz=UTC).replace(tzinfo=None) + _FALLBACK_LIFETIME
    return Credential(
        user_id=user_id,
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        expires_at=expiry.replace(tzinfo=UTC),
    )


def run_local_signin(
    user_id: str,
    store: CredentialStore,
    client_secrets_path: str | Path = "credentials.json",
    scopes: list[str] | None = None,
) -> Credential:
    """Sign *user_id* in through the browser and persist the credential.

    Replaces any stored credential for the user, which is also how a
    credential leaves the terminal *Failed* state.

    Args:
        user_id: Identity the credential is stored under.
        store: Credential store to write to.
        client_secrets_path: Path to the OAuth2 client-secrets file.
        scopes: OAuth2 scopes to request.  Defaults to
            ``DEFAULT_GMAIL_SCOPES``.

    Returns:
        The newly stored ``Credential``.
    """
    if scopes is None:
        scopes = DEFAULT_GMAIL_SCOPES

    flow = InstalledAppFlow.from_client_secrets_file(str(client_secrets_path), scopes)
    creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")

    credential = credential_from_google(user_id, creds)
    store.save(credential)
    logger.info("Credential stored after sign-in", user_id=user_id)
    return credential
