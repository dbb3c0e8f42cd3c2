"""
Shared helpers for the record types: UTC timestamps and TTLs.

Timestamps are stored as ISO-8601 strings with millisecond precision and a
``Z`` suffix (``2024-01-15T10:30:00.000Z``) so they compare correctly as
plain strings in DynamoDB key conditions.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as a sortable UTC ISO-8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Accepts the ``Z`` suffix as well as explicit offsets. Returns None for
    empty input or unparseable strings.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value) -> Optional[str]:
    """Normalise a boto3 datetime (or string) to the stored timestamp format."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return format_timestamp(value)
    return str(value)


def ttl_from(moment: datetime, days: int) -> int:
    """DynamoDB TTL (epoch seconds) ``days`` after ``moment``."""
    return int((moment + timedelta(days=days)).timestamp())
