"""
Time utilities for the match sync API.

All times are stored as naive UTC datetimes. Provider timestamps arrive as
ISO 8601 strings (often with a trailing "Z") and are normalized here.
"""
from datetime import datetime, timezone
from typing import Optional, Union

# UTC timezone for Python < 3.11 compatibility
try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a provider timestamp into naive UTC.

    Examples:
        >>> parse_datetime("2026-03-01T15:00:00Z")
        datetime.datetime(2026, 3, 1, 15, 0)
        >>> parse_datetime("not a date") is None
        True
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return None


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """Render a stored naive UTC datetime as ISO 8601 with a Z suffix."""
    if value is None:
        return None
    return to_naive_utc(value).isoformat() + "Z"


def format_time_since(then: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Short human description of elapsed time ("42s ago", "5m ago", "3h ago").

    Returns "Never" when `then` is None.
    """
    if then is None:
        return "Never"
    now = now or utc_now()
    seconds = max(0, int((now - then).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    return f"{seconds // 3600}h ago"
