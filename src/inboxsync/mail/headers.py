"""Header lookup and address parsing shared by inbound parsing and composition.

Provides helpers for:
- Case-insensitive lookup over Gmail ``payload.headers`` lists
- Splitting ``"Name" <addr>`` strings into display name and address
- Deriving a display name and initials for bare addresses
- Parsing RFC 2822 ``Date`` header values
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from email.utils import getaddresses, parsedate_to_datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

_ANGLE_ADDR = re.compile(r"<(.+?)>")
_NAMED_ADDR = re.compile(r"^(?P<name>.+?)\s*<(?P<email>[^>]+)>\s*$")
_LOCAL_PART_SEPARATORS = re.compile(r"[._-]+")


class Address(BaseModel):
    """A parsed mailbox: display name, bare address, and avatar initials."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    initials: str


class HeaderSet:
    """Ordered list of ``(name, value)`` header pairs.

    Lookups are case-insensitive and the first matching header wins, mirroring
    how Gmail returns repeated headers in message order.
    """

    def __init__(self, headers: Iterable[tuple[str, str]] = ()) -> None:
        self._headers: list[tuple[str, str]] = list(headers)

    @classmethod
    def from_payload(cls, raw: list[dict[str, Any]] | None) -> HeaderSet:
        """Build a ``HeaderSet`` from a Gmail ``payload.headers`` list.

        Entries without a name are skipped; a missing value becomes ``""``.
        """
        pairs = [
            (str(h["name"]), str(h.get("value") or ""))
            for h in raw or []
            if isinstance(h, dict) and h.get("name")
        ]
        return cls(pairs)

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return the first header value named *name*, ignoring case."""
        wanted = name.lower()
        for header_name, value in self._headers:
            if header_name.lower() == wanted:
                return value
        return default

    def add(self, name: str, value: str) -> None:
        self._headers.append((name, value))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"HeaderSet({self._headers!r})"


def extract_email(value: str) -> str:
    """Return the bare address from ``Name <addr>`` or a bare address string."""
    match = _ANGLE_ADDR.search(value)
    return match.group(1).strip() if match else value.strip()


def extract_display_name(value: str) -> str | None:
    """Return the display name of ``Name <addr>``, or ``None`` for a bare address."""
    match = _NAMED_ADDR.match(value.strip())
    if not match:
        return None
    name = match.group("name").replace('"', "").strip()
    return name or None


def humanize_local_part(email: str) -> str:
    """Turn ``jane.doe@example.com`` into ``Jane Doe``."""
    local_part = email.split("@", 1)[0]
    words = [w for w in _LOCAL_PART_SEPARATORS.split(local_part) if w]
    return " ".join(w.capitalize() for w in words)


def initials_for(name: str) -> str:
    """First letters of the first and last words; two letters for a single word."""
    tokens = name.split()
    if not tokens:
        return ""
    if len(tokens) == 1:
        return tokens[0][:2].upper()
    return (tokens[0][0] + tokens[-1][0]).upper()


def parse_address(value: str) -> Address:
    """Parse a From/To style address string.

    Accepts ``"Display Name" <addr@x>``, ``Display Name <addr@x>`` and bare
    ``addr@x``.  Bare addresses get a name derived from their local part.

    Args:
        value: The raw address string.

    Returns:
        The parsed ``Address``.
    """
    email = extract_email(value)
    name = extract_display_name(value) or humanize_local_part(email)
    return Address(name=name, email=email, initials=initials_for(name))


def parse_address_list(value: str | None) -> list[str]:
    """Split a To/Cc header into bare addresses, honouring quoted commas."""
    if not value:
        return []
    return [addr.strip() for _, addr in getaddresses([value]) if addr.strip()]


def parse_header_date(value: str | None) -> datetime | None:
    """Parse an RFC 2822 ``Date`` header, returning ``None`` when unparseable.

    Naive results are assumed to be UTC.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
