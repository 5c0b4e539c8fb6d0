"""
Standardized Date/Time Handling Utilities

RULES:
- Always store datetimes as UTC (use now_utc())
- A user's "calendar day" is the date in the user's own timezone (use local_date())
- Goal times ("7:00 AM", "23:00") are parsed with parse_time_of_day()
- Never mix naive and aware datetimes
"""

import logging
from datetime import datetime, date, time
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Default timezone if user hasn't set one
DEFAULT_TIMEZONE = "UTC"

_TIME_FORMATS = ("%I:%M %p", "%I:%M%p", "%H:%M")


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(ZoneInfo("UTC"))


def is_valid_timezone(tz_name: str) -> bool:
    """Check whether tz_name is a known IANA timezone"""
    try:
        ZoneInfo(tz_name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def get_timezone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Resolve a timezone name, falling back to UTC

    Args:
        tz_name: IANA timezone name (e.g. "America/New_York")

    Returns:
        ZoneInfo object
    """
    if not tz_name:
        return ZoneInfo(DEFAULT_TIMEZONE)

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error(f"Invalid timezone '{tz_name}': {e}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def to_user_timezone(dt: datetime, tz_name: Optional[str]) -> datetime:
    """
    Convert datetime to a user's timezone

    Args:
        dt: Datetime (should be timezone-aware)
        tz_name: User's IANA timezone name

    Returns:
        Datetime in user's timezone
    """
    if dt.tzinfo is None:
        # Assume UTC if naive
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
        logger.warning(f"Received naive datetime, assuming UTC: {dt}")

    return dt.astimezone(get_timezone(tz_name))


def local_date(dt: datetime, tz_name: Optional[str]) -> date:
    """Calendar day of dt as seen by a user in tz_name"""
    return to_user_timezone(dt, tz_name).date()


def parse_time_of_day(time_str: str) -> time:
    """
    Parse a time-of-day goal string

    Accepts 12-hour ("7:00 AM", "11:30pm") and 24-hour ("07:00", "23:30") forms.

    Raises:
        ValueError: If time_str is not a recognised time of day
    """
    if not time_str or not time_str.strip():
        raise ValueError("Time of day must not be empty")

    normalized = time_str.strip().upper()
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(normalized, fmt).time()
        except ValueError:
            continue

    raise ValueError(f"Invalid time format '{time_str}'. Expected e.g. '7:00 AM' or '07:00'")


def format_time_of_day(value: Union[datetime, time]) -> str:
    """Format as the app displays times, e.g. '7:05 AM'"""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def combine_local(day: date, at: time, tz_name: Optional[str]) -> datetime:
    """Aware datetime for a wall-clock time on a given day in the user's timezone"""
    return datetime.combine(day, at, tzinfo=get_timezone(tz_name))
