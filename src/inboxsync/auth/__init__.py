"""Authentication module: credential lifecycle, storage, and sign-in."""

from inboxsync.auth.credentials import (
    CredentialManager,
    CredentialStore,
    GoogleTokenRefresher,
    TokenRefresher,
)
from inboxsync.auth.signin import credential_from_google, run_local_signin
from inboxsync.auth.store import SQLiteCredentialStore, init_credential_db

__all__ = [
    "CredentialManager",
    "CredentialStore",
    "GoogleTokenRefresher",
    "SQLiteCredentialStore",
    "TokenRefresher",
    "credential_from_google",
    "init_credential_db",
    "run_local_signin",
]
