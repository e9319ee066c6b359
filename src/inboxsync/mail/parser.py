"""MIME body extraction over Gmail ``payload`` part trees.

Provides helpers for:
- Converting a Gmail ``payload`` dict into a tagged ``LeafPart`` /
  ``CompositePart`` tree
- Decoding and encoding base64url payloads
- Picking a single body out of a multipart tree, preferring HTML over plain
  text and recursing into nested ``multipart/*`` containers
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict

from inboxsync.domain.errors import ParseError
from inboxsync.domain.types import PLAIN_TEXT_TYPE, RICH_TEXT_TYPE

logger = structlog.get_logger()


class LeafPart(BaseModel):
    """A part carrying its own base64url payload (possibly empty)."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = ""
    payload: str = ""


class CompositePart(BaseModel):
    """A ``multipart/*`` container with ordered child parts."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = ""
    children: tuple[LeafPart | CompositePart, ...]


CompositePart.model_rebuild()

MimePart = LeafPart | CompositePart


class ExtractedBody(BaseModel):
    """The single body chosen for display and whether it is HTML."""

    model_config = ConfigDict(frozen=True)

    body: str = ""
    is_rich: bool = False


EMPTY_BODY = ExtractedBody()


def part_from_payload(payload: dict[str, Any]) -> MimePart:
    """Convert a Gmail ``payload`` (or nested ``parts`` entry) into a ``MimePart``.

    A part with a non-empty ``parts`` list becomes a ``CompositePart``;
    anything else is a ``LeafPart`` whose payload is ``body.data``.
    """
    mime_type = str(payload.get("mimeType") or "")
    children = [p for p in payload.get("parts") or [] if isinstance(p, dict)]
    if children:
        return CompositePart(
            mime_type=mime_type,
            children=tuple(part_from_payload(child) for child in children),
        )
    body = payload.get("body") or {}
    return LeafPart(mime_type=mime_type, payload=str(body.get("data") or ""))


def decode_base64url(data: str) -> str:
    """Decode a base64url string (padded or not) into UTF-8 text.

    Invalid UTF-8 sequences are replaced rather than rejected.

    Raises:
        ParseError: If *data* is not valid base64url.
    """
    stripped = data.strip().rstrip("=")
    if len(stripped) % 4 == 1:
        raise ParseError("base64url payload has an impossible length")
    standard = stripped.replace("-", "+").replace("_", "/")
    standard += "=" * (-len(standard) % 4)
    try:
        raw = base64.b64decode(standard, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"invalid base64url payload: {exc}") from exc
    return raw.decode("utf-8", errors="replace")


def encode_base64url(raw: bytes) -> str:
    """Encode *raw* as base64url with the trailing ``=`` padding stripped."""
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_leaf(part: LeafPart) -> str:
    """Decode a leaf payload, degrading to ``""`` when it is malformed.

    One bad part must not make the rest of a conversation unreadable.
    """
    if not part.payload:
        return ""
    try:
        return decode_base64url(part.payload)
    except ParseError as exc:
        logger.debug("Undecodable MIME part skipped", mime_type=part.mime_type, error=str(exc))
        return ""


def _first_leaf_of_type(children: tuple[MimePart, ...], mime_type: str) -> str:
    for child in children:
        if isinstance(child, LeafPart) and child.mime_type == mime_type:
            text = decode_leaf(child)
            if text:
                return text
    return ""


def extract_body(part: MimePart) -> ExtractedBody:
    """Pick the body to show for a message part tree.

    Order of preference, depth first:

    1. A leaf decodes its own payload.
    2. The first ``text/html`` child with content.
    3. The first ``text/plain`` child with content.
    4. The first nested container yielding content, with the same preference.

    Args:
        part: The root of the part tree.

    Returns:
        The decoded body and its rich-text flag, or an empty plain body when
        no part yields content.
    """
    if isinstance(part, LeafPart):
        text = decode_leaf(part)
        if not text:
            return EMPTY_BODY
        return ExtractedBody(body=text, is_rich=part.mime_type == RICH_TEXT_TYPE)

    html = _first_leaf_of_type(part.children, RICH_TEXT_TYPE)
    if html:
        return ExtractedBody(body=html, is_rich=True)

    plain = _first_leaf_of_type(part.children, PLAIN_TEXT_TYPE)
    if plain:
        return ExtractedBody(body=plain, is_rich=False)

    for child in part.children:
        if isinstance(child, CompositePart):
            nested = extract_body(child)
            if nested.body:
                return nested

    return EMPTY_BODY
