"""
Time and timezone utilities for appointment scheduling.

Timestamps are stored as naive datetimes in the business timezone
(``TIMEZONE_DEFAULT``). Aware datetimes coming from clients are converted
with :func:`to_local` before they are persisted or compared.
"""
import re
from datetime import datetime, date, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from smartbook.config import get_settings

settings = get_settings()

_TIME_ONLY = re.compile(r"^\d{1,2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?$")


def get_business_timezone(timezone_str: str = None) -> ZoneInfo:
    """
    Get timezone object for the business.

    Args:
        timezone_str: Timezone string (e.g., "America/New_York")

    Returns:
        ZoneInfo: Timezone object
    """
    tz_str = timezone_str or settings.timezone_default
    return ZoneInfo(tz_str)


def now_local(timezone_str: str = None) -> datetime:
    """Current wall-clock time in the business timezone, as a naive datetime."""
    tz = get_business_timezone(timezone_str)
    return datetime.now(tz).replace(tzinfo=None)


def to_local(dt: datetime, timezone_str: str = None) -> datetime:
    """
    Normalize a datetime to naive business-local time.

    Args:
        dt: Datetime object (naive or timezone-aware)
        timezone_str: Business timezone

    Returns:
        datetime: Naive datetime in the business timezone
    """
    if dt.tzinfo is None:
        # Naive datetime - already business local
        return dt

    tz = get_business_timezone(timezone_str)
    return dt.astimezone(tz).replace(tzinfo=None)


def day_bounds(target_date: date) -> Tuple[datetime, datetime]:
    """First and last instant of a calendar day."""
    return datetime.combine(target_date, time.min), datetime.combine(target_date, time.max)


def window_around(target_date: date, days: int) -> Tuple[datetime, datetime]:
    """
    Date window of ``days`` days on either side of a target date.

    Returns:
        Tuple[datetime, datetime]: (start of first day, end of last day)
    """
    start, _ = day_bounds(target_date - timedelta(days=days))
    _, end = day_bounds(target_date + timedelta(days=days))
    return start, end


def hours_since_midnight(dt: datetime, target_date: date) -> float:
    """
    Fractional hours between ``target_date`` midnight and ``dt``.

    09:45 on the target day is 9.75; 01:00 the following day is 25.0.
    """
    midnight = datetime.combine(target_date, time.min)
    return (to_local(dt) - midnight).total_seconds() / 3600


def at_fractional_hour(target_date: date, hour: float) -> datetime:
    """Datetime on ``target_date`` at a fractional hour (8.5 -> 08:30)."""
    return datetime.combine(target_date, time.min) + timedelta(hours=hour)


def stamp_date(value: str, target_date: date) -> str:
    """
    Prefix a bare time string with a date.

    "09:30" becomes "2024-05-01T09:30" and "09:30Z" becomes
    "2024-05-01T09:30Z". Strings that already carry a date are returned
    unchanged.
    """
    value = value.strip()
    if _TIME_ONLY.match(value):
        return f"{target_date.isoformat()}T{value}"
    return value


def format_hour(hour: float) -> str:
    """Format fractional hours as HH:MM (13.5 -> "13:30")."""
    total_minutes = int(round(hour * 60))
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def format_datetime_for_user(dt: datetime, include_date: bool = True) -> str:
    """
    Format datetime for user display.

    Args:
        dt: Datetime to format
        include_date: Whether to include the date

    Returns:
        str: Formatted datetime string
    """
    local_dt = to_local(dt)
    if not include_date:
        return local_dt.strftime('%H:%M')

    today = now_local().date()
    if local_dt.date() == today:
        return f"Today at {local_dt.strftime('%H:%M')}"
    elif local_dt.date() == today + timedelta(days=1):
        return f"Tomorrow at {local_dt.strftime('%H:%M')}"
    return local_dt.strftime('%A, %B %d at %H:%M')


def parse_date_param(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or datetime query parameter into local time."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return to_local(parsed)
