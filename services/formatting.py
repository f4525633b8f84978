"""Time helpers for activity display and storage.

Activity timestamps are stored as milliseconds since the epoch (UTC); view
history buckets are keyed by the UTC calendar day.
"""
from datetime import datetime, UTC
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_millis(value: datetime) -> int:
    return int(as_utc(value).timestamp() * 1000)


def from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def day_key(value: Optional[datetime] = None) -> str:
    """Calendar-day key (YYYY-MM-DD, UTC) used by the view history ledger."""
    return as_utc(value or utcnow()).strftime("%Y-%m-%d")


def parse_day_key(key: str) -> datetime:
    """Midnight UTC of a YYYY-MM-DD key. Raises ValueError for malformed keys."""
    return datetime.strptime(key, "%Y-%m-%d").replace(tzinfo=UTC)


def _plural(count: int, unit: str) -> str:
    if count == 1:
        return f"1 {unit} ago"
    return f"{count} {unit}s ago"


def format_relative_time(then: datetime, now: Optional[datetime] = None) -> str:
    """
    Format a past moment relative to `now` (e.g., "2 hours ago").

    Buckets: months (30 days) > weeks (7 days) > days > hours > minutes,
    falling back to "Just now". One day renders as "Yesterday".
    Future timestamps render as "Just now".
    """
    now = as_utc(now or utcnow())
    elapsed = (now - as_utc(then)).total_seconds()

    seconds = int(elapsed // 1)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7
    months = days // 30

    if months > 0:
        return _plural(months, "month")
    if weeks > 0:
        return _plural(weeks, "week")
    if days > 0:
        return "Yesterday" if days == 1 else f"{days} days ago"
    if hours > 0:
        return _plural(hours, "hour")
    if minutes > 0:
        return _plural(minutes, "minute")
    return "Just now"
