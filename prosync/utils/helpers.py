"""Shared utility functions.

utc_now:         timezone-aware "now" used for every server-side stamp
ensure_aware:    attach UTC to naive datetimes coming back from SQLite
parse_datetime:  lenient parser for API / form input (returns None on bad input)
new_identifier:  id minting for backends without a native format
"""
import re
import uuid
from datetime import date, datetime, time, timezone

ISO_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime | None) -> datetime | None:
    """Return ``value`` with tzinfo, assuming UTC for naive datetimes."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_iso_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting the trailing ``Z`` JavaScript emits.

    Raises ValueError on bad input.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def parse_datetime(value):
    """Parse a datetime from ISO text, a date, or DD.MM.YYYY.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DDTHH:MM:SS[.ffffff][Z|+HH:MM]
    - YYYY-MM-DD (midnight UTC)
    - DD.MM.YYYY (Brazilian/European format, midnight UTC)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    try:
        return parse_iso_timestamp(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").replace(tzinfo=timezone.utc)
    except (ValueError, TypeError):
        return None


def new_identifier() -> str:
    return str(uuid.uuid4())


def is_uuid(value) -> bool:
    """True when ``value`` is a well-formed UUID string."""
    if not isinstance(value, str) or not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True
