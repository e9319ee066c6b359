"""Mail domain: Gmail API client, body parsing, sync, and composition."""

from inboxsync.mail.client import GmailClient, create_gmail_client
from inboxsync.mail.composer import MessageComposer, build_raw_message, encode_message
from inboxsync.mail.headers import Address, HeaderSet, parse_address
from inboxsync.mail.parser import (
    CompositePart,
    ExtractedBody,
    LeafPart,
    decode_base64url,
    encode_base64url,
    extract_body,
    part_from_payload,
)
from inboxsync.mail.service import MailService
from inboxsync.mail.threading import (
    ReplyContext,
    build_reply_headers,
    derive_reply_subject,
    get_reply_context,
)
from inboxsync.mail.threads import ThreadSynchronizer, parse_message, parse_thread

__all__ = [
    "Address",
    "CompositePart",
    "ExtractedBody",
    "GmailClient",
    "HeaderSet",
    "LeafPart",
    "MailService",
    "MessageComposer",
    "ReplyContext",
    "ThreadSynchronizer",
    "build_raw_message",
    "build_reply_headers",
    "create_gmail_client",
    "decode_base64url",
    "derive_reply_subject",
    "encode_base64url",
    "encode_message",
    "extract_body",
    "get_reply_context",
    "parse_address",
    "parse_message",
    "parse_thread",
    "part_from_payload",
]
