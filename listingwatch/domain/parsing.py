# listingwatch/domain/parsing.py
from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

PUBLISHED_LAYOUT = "%Y-%m-%d %H:%M:%S"

_AVAILABLE_RE = re.compile(r"\d+(?:st|nd|rd|th) \w+ \d{4}")
_ORDINAL_RE = re.compile(r"(?P<day>\d+)(?:st|nd|rd|th)")


def to_int(x: Any) -> int:
    """
    Strict integer field: empty -> 0, anything else must be a whole number.
    Raises ValueError so the decoder can report a malformed payload.
    """
    if x is None:
        return 0
    s = str(x).strip()
    if not s:
        return 0
    return int(s)


def to_str(x: Any) -> str:
    if x is None:
        return ""
    return str(x).strip()


def to_url(x: Any) -> str | None:
    s = to_str(x)
    return s or None


def parse_published(s: str | None) -> datetime | None:
    """'2024-03-01 12:30:00' -> aware UTC datetime. Unparsable -> None."""
    s = to_str(s)
    if not s:
        return None
    try:
        return datetime.strptime(s, PUBLISHED_LAYOUT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_availability(s: str | None, *, today: date | None = None) -> date | None:
    """
    Zoopla renders availability as free text, e.g.
      "Available immediately"
      "Available from 1st Jun 2024"
      "Available from 22nd September 2024"
    """
    s = to_str(s)
    if not s:
        return None
    if s == "Available immediately":
        return today or date.today()

    m = _AVAILABLE_RE.search(s)
    if not m:
        return None
    cleaned = _ORDINAL_RE.sub(r"\g<day>", m.group(0))
    for layout in ("%d %b %Y", "%d %B %Y"):
        try:
            return datetime.strptime(cleaned, layout).date()
        except ValueError:
            continue
    return None


def parse_rfc3339(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
