"""Date helpers for calendar-day and calendar-month windows"""

from datetime import datetime, timezone
from typing import Optional


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """
    Return an aware "now".

    The timezone of the returned value defines the local calendar used
    for daily and monthly windows. Naive values are taken as system local.
    """
    if now is None:
        return datetime.now().astimezone()
    if now.tzinfo is None:
        return now.astimezone()
    return now


def to_utc(value: datetime) -> datetime:
    """Convert to an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def same_local_day(value: datetime, now: datetime) -> bool:
    """Calendar-date equality in now's timezone, not a rolling 24h window."""
    return to_utc(value).astimezone(now.tzinfo).date() == now.date()


def same_local_month(value: datetime, now: datetime) -> bool:
    local = to_utc(value).astimezone(now.tzinfo)
    return local.year == now.year and local.month == now.month


def epoch_millis(value: datetime) -> int:
    return int(to_utc(value).timestamp() * 1000)


def isoformat_utc(value: datetime) -> str:
    """ISO-8601 in UTC with a trailing Z, e.g. 2026-10-19T12:00:00.000000Z"""
    return to_utc(value).isoformat().replace("+00:00", "Z")
