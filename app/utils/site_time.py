# app/utils/site_time.py
"""
Site-local calendar days. Timestamps are stored as naive UTC; "today" at the
gate is the site's local day, shifted by settings.SITE_UTC_OFFSET_HOURS.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple

from app.config import settings


def _offset() -> timedelta:
    return timedelta(hours=settings.SITE_UTC_OFFSET_HOURS)


def site_now() -> datetime:
    return datetime.utcnow() + _offset()


def site_today() -> date:
    return site_now().date()


def day_window(day: date) -> Tuple[datetime, datetime]:
    """[start, end) of a site-local day, expressed in naive UTC."""
    start = datetime.combine(day, time.min) - _offset()
    return start, start + timedelta(days=1)


def to_site_time(ts: datetime) -> datetime:
    return ts + _offset()


def to_naive_utc(ts: datetime) -> datetime:
    """Storage form of a client-supplied datetime: aware values are converted, naive ones are taken as UTC."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)
