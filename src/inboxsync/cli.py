"""Command-line interface for signing in and exercising the mail layer.

Provides an argparse-based tool with four subcommands:

- ``signin``  -- run the browser OAuth flow and store the credential
- ``threads`` -- list conversation summaries for a category
- ``thread``  -- show one conversation with decoded messages
- ``send``    -- send a message, optionally as a threaded reply

Output is JSON on stdout; failures print ``{"error": ...}`` and exit 1.

Usage::

    python -m inboxsync.cli signin --user me@example.com
    python -m inboxsync.cli threads --user me@example.com --category sent
    python -m inboxsync.cli send --user me@example.com --to a@x.com --body "<p>Hi</p>"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from inboxsync.auth.signin import run_local_signin
from inboxsync.auth.store import SQLiteCredentialStore, init_credential_db
from inboxsync.config import get_settings
from inboxsync.domain.errors import MailSyncError
from inboxsync.domain.models import OutboundMessageRequest
from inboxsync.domain.types import MailCategory
from inboxsync.mail.service import MailService


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Gmail sync and compose tool")
    parser.add_argument("--db", type=str, default=None, help="Path to credential database")
    subparsers = parser.add_subparsers(dest="command", required=True)

    signin = subparsers.add_parser("signin", help="Sign in and store a credential")
    signin.add_argument("--user", required=True, help="User identity to store the credential under")
    signin.add_argument("--client-secrets", type=str, default=None, help="OAuth client secrets file")

    threads = subparsers.add_parser("threads", help="List conversation summaries")
    threads.add_argument("--user", required=True)
    threads.add_argument(
        "--category",
        choices=[c.value for c in MailCategory],
        default=MailCategory.FOCUS.value,
    )
    threads.add_argument("--max-results", type=int, default=None)

    thread = subparsers.add_parser("thread", help="Show one conversation")
    thread.add_argument("--user", required=True)
    thread.add_argument("thread_id")

    send = subparsers.add_parser("send", help="Send a message")
    send.add_argument("--user", required=True)
    send.add_argument("--to", required=True)
    send.add_argument("--body", required=True)
    send.add_argument("--subject", default=None)
    send.add_argument("--thread-id", default=None, help="Conversation to file the message into")
    send.add_argument("--reply-to", default=None, help="Gmail message ID being replied to")

    return parser


async def run_command(args: argparse.Namespace, service: MailService) -> Any:
    """Execute a read/send subcommand and return a JSON-serializable result."""
    credential = await service.credential_for(args.user)

    if args.command == "threads":
        summaries = await service.list_summaries(credential, args.max_results, args.category)
        return [s.model_dump(mode="json") for s in summaries]

    if args.command == "thread":
        detail = await service.get_detail(credential, args.thread_id)
        return detail.model_dump(mode="json") if detail is not None else None

    request = OutboundMessageRequest(
        to=args.to,
        subject=args.subject,
        body=args.body,
        conversation_id=args.thread_id,
        in_reply_to_id=args.reply_to,
    )
    result = await service.send(credential, request)
    return result.model_dump(mode="json")


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the subcommand, and print JSON output."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    db_path = Path(args.db) if args.db else settings.credential_db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = init_credential_db(db_path)
    store = SQLiteCredentialStore(conn)

    try:
        if args.command == "signin":
            secrets = args.client_secrets or settings.google_client_secrets_path
            credential = run_local_signin(args.user, store, client_secrets_path=secrets)
            output: Any = {"user_id": credential.user_id, "expires_at": credential.expires_at.isoformat()}
        else:
            service = MailService.from_settings(settings, store=store)
            output = asyncio.run(run_command(args, service))
    except MailSyncError as exc:
        print(json.dumps({"error": str(exc)}), file=sys.stderr)
        return 1
    finally:
        conn.close()

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
