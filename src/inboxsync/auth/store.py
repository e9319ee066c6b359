"""SQLite-backed credential store keyed by user identity.

Accepts an open sqlite3.Connection, uses parameterized queries exclusively,
and commits synchronously after writes.
This layer only persists credentials; deciding when to refresh them is the
``CredentialManager``'s job.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from inboxsync.domain.models import Credential


def init_credential_db(db_path: Path | str) -> sqlite3.Connection:
    """Open the credential database and create the ``credentials`` table.

    The connection is opened with ``check_same_thread=False`` because store
    calls are dispatched through ``asyncio.to_thread``.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    if str(db_path) != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS credentials (
            user_id TEXT PRIMARY KEY,
            access_token TEXT NOT NULL,
            refresh_token TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            last_error TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """)

    conn.commit()
    return conn


class SQLiteCredentialStore:
    """Persist and retrieve one OAuth credential per user."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  ``credentials`` table (see ``init_credential_db``).
        """
        self._conn = conn

    def save(self, credential: Credential) -> None:
        """Insert or replace the credential for ``credential.user_id``.

        Uses ``INSERT OR REPLACE`` with a ``COALESCE`` subquery so the
        original ``created_at`` is preserved across refreshes.
        """
        now = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        self._conn.execute(
            """
            INSERT OR REPLACE INTO credentials (
                user_id, access_token, refresh_token, expires_at, last_error,
                created_at, updated_at
            ) VALUES (
                ?, ?, ?, ?, ?,
                COALESCE(
                    (SELECT created_at FROM credentials WHERE user_id = ?),
                    ?
                ),
                ?
            )
            """,
            (
                credential.user_id,
                credential.access_token,
                credential.refresh_token,
                credential.expires_at.isoformat(),
                credential.last_error,
                credential.user_id,  # for the COALESCE subquery
                now,  # default created_at on first insert
                now,  # updated_at always set to now
            ),
        )
        self._conn.commit()

    def load(self, user_id: str) -> Credential | None:
        """Return the stored credential for *user_id*, or ``None``."""
        row = self._conn.execute(
            """
            SELECT user_id, access_token, refresh_token, expires_at, last_error
            FROM credentials WHERE user_id = ?
            """,
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        return Credential(
            user_id=row[0],
            access_token=row[1],
            refresh_token=row[2],
            expires_at=datetime.fromisoformat(row[3]),
            last_error=row[4],
        )
