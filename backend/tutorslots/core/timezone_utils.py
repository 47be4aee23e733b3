"""
Timezone utilities for the scheduling backend.

Availability rules are expressed in the tutor's local wall-clock time while
bookings are stored in UTC. These helpers convert between the two.
"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union

import pytz

from .config import settings

TzInfo = Union[pytz.BaseTzInfo, timezone]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are treated as UTC (SQLite drops tzinfo on round trip).
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_timezone(tz_name: Optional[str]) -> pytz.BaseTzInfo:
    """Resolve an IANA name, falling back to the deployment default."""
    try:
        return pytz.timezone(tz_name or settings.default_timezone)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(settings.default_timezone)


def sunday_based_weekday(day: date) -> int:
    """Day of week with Sunday=0 ... Saturday=6."""
    return (day.weekday() + 1) % 7


def local_to_utc(day: date, wall_time: time, tz: pytz.BaseTzInfo) -> Optional[datetime]:
    """
    Convert a wall-clock time on a given day in ``tz`` to aware UTC.

    Returns None for a wall time skipped by a spring-forward DST jump.
    Ambiguous fall-back times resolve to standard time.
    """
    naive = datetime.combine(day, wall_time)
    try:
        local_dt = tz.localize(naive, is_dst=None)
    except pytz.NonExistentTimeError:
        return None
    except pytz.AmbiguousTimeError:
        local_dt = tz.localize(naive, is_dst=False)
    return local_dt.astimezone(timezone.utc)


def utc_to_local(dt: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Convert a UTC datetime into the given timezone."""
    return ensure_utc(dt).astimezone(tz)


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def parse_hhmm(value: str) -> time:
    """
    Parse a ``HH:MM`` string into a minute-precision ``time``.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time format '{value}', expected HH:MM") from exc
    return parsed.time()
