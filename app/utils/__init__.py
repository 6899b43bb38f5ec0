"""Shared utility helpers used across connectors and services."""

from datetime import datetime, timezone


def safe_int(v):
    """Safely convert a value to int, returning None on failure."""
    if v is None:
        return None
    try:
        return int(v)
    except (ValueError, TypeError):
        return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso(value) -> datetime | None:
    """Parse an ISO-8601 timestamp (trailing 'Z' allowed). None on failure."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
