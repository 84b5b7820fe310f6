import math
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_until(end: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Whole days left until `end`, rounded up, never negative."""
    if end is None:
        return 0
    now = now or utcnow()
    seconds = (to_naive_utc(end) - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / timedelta(days=1).total_seconds())


def time_ago(value: datetime, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    hours = int((now - to_naive_utc(value)).total_seconds() // 3600)
    if hours < 1:
        return "just now"
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"
