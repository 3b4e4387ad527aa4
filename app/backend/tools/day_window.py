# app/backend/tools/day_window.py

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from ..config.config import settings


def app_timezone() -> ZoneInfo:
    """The timezone whose calendar day the daily attendance limit follows."""
    return ZoneInfo(settings.APP_TIMEZONE)


def local_now() -> datetime:
    """Current time as an aware datetime in the application timezone."""
    return datetime.now(app_timezone())


def day_bounds(day: Optional[date] = None, tz: Optional[ZoneInfo] = None) -> Tuple[datetime, datetime]:
    """
    Returns the half-open window [start of day, start of next day) for the
    given calendar day. Both ends are aware datetimes so they compare
    correctly against TIMESTAMPTZ columns.

    Args:
        day (date): Calendar day; today in the application timezone when omitted.
        tz (ZoneInfo): Overrides the application timezone.
    """
    tz = tz or app_timezone()
    if day is None:
        day = datetime.now(tz).date()
    start = datetime.combine(day, time.min, tzinfo=tz)
    # Build the next midnight from the calendar date, not start + 24h, so DST days stay correct.
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end
