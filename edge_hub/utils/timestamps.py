"""
Timestamp helpers.

Rows are stored with naive UTC datetimes (SQLite drops tzinfo), so every
value coming in from the cloud is normalised to the same form before it is
compared against stored values.
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 value into a naive UTC datetime.

    Returns None for empty values. Raises ValueError when the value cannot be
    parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    else:
        raise ValueError(f"Unsupported datetime value: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def is_iso_datetime(value: Any) -> bool:
    try:
        parse_iso_datetime(value)
    except (ValueError, TypeError):
        return False
    return True


def to_iso_z(value: Optional[datetime]) -> Optional[str]:
    """Format a naive UTC datetime the way the cloud expects (trailing Z)."""
    if value is None:
        return None
    return value.isoformat(timespec='milliseconds') + 'Z'
