"""
Input normalization for reminder intake.

Phone numbers are normalized to E.164 once, at creation. Message bodies
are stripped of control characters.
"""

import re
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MAX_MESSAGE_LENGTH = 500

E164_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$")
_PHONE_SEPARATORS = re.compile(r"[\s().\-]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def normalize_phone(raw: str | None) -> str | None:
    """
    Normalize a phone number to E.164.

    Only international numbers are accepted ("+" or "00" prefix).

    Returns:
        The E.164 string, or None if the input is not a valid number.
    """
    if not isinstance(raw, str) or not raw:
        return None

    candidate = _PHONE_SEPARATORS.sub("", raw.strip())
    if candidate.startswith("00"):
        candidate = "+" + candidate[2:]

    if not E164_PATTERN.match(candidate):
        return None
    return candidate


def sanitize_message(message: str | None) -> str:
    """Trim and drop control characters (newlines and tabs are kept)."""
    if not isinstance(message, str) or not message:
        return ""
    return _CONTROL_CHARS.sub("", message).strip()


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Look up an IANA timezone, None if unknown."""
    if not isinstance(name, str) or not name.strip():
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return None


def parse_fire_at(value: str | datetime, zone: tzinfo | None = None) -> datetime:
    """
    Parse an ISO-8601 fire time into an aware UTC datetime.

    Naive values are interpreted in the given zone (UTC if none). Instants
    that fall outside the datetime range are clamped to its nearest end.

    Raises:
        ValueError: if the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif not isinstance(value, str):
        raise ValueError(f"unsupported fire time: {value!r}")
    else:
        text = value.strip()
        if not text:
            raise ValueError("empty fire time")
        # fromisoformat on 3.11+ accepts the "Z" suffix
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone or UTC)
    try:
        return parsed.astimezone(UTC)
    except OverflowError:
        # Offset pushes the instant past the datetime range
        edge = datetime.max if parsed.year == datetime.max.year else datetime.min
        return edge.replace(tzinfo=UTC)
