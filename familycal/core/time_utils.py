"""Local-time helpers for the fixed UTC-offset time model.

All instants handled by familycal are timezone-aware datetimes. The device has
one local zone, a fixed offset from UTC configured at startup; there is no
daylight-saving handling.
"""

from __future__ import annotations

import calendar
import datetime
import logging
import os

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "FAMILYCAL_TEST_TIME"

MONDAY = 0
SUNDAY = 6


def local_timezone(offset_minutes: int = 0) -> datetime.timezone:
    """Return the fixed-offset zone used as local time.

    Args:
        offset_minutes: Offset from UTC in minutes (e.g. 60 for UTC+1)

    Returns:
        A ``datetime.timezone`` with that offset
    """
    if offset_minutes == 0:
        return datetime.timezone.utc
    return datetime.timezone(datetime.timedelta(minutes=offset_minutes))


def now_local(tz: datetime.tzinfo) -> datetime.datetime:
    """Return the current time in the local zone.

    Can be overridden for testing via the FAMILYCAL_TEST_TIME environment
    variable (ISO 8601, e.g. "2025-06-01T09:00:00+02:00"). A naive override is
    taken as local time.
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            from dateutil import parser as date_parser

            dt = date_parser.isoparse(test_time)
            return to_local(dt, tz)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.datetime.now(tz)


def to_local(dt: datetime.datetime, tz: datetime.tzinfo) -> datetime.datetime:
    """Attach or convert to the local zone.

    Naive datetimes are local wall-clock time; aware datetimes are converted.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def day_bounds(day: datetime.date, tz: datetime.tzinfo) -> tuple[datetime.datetime, datetime.datetime]:
    """Return the half-open instant interval ``[midnight, next midnight)`` of a day.

    The end is exactly 24 hours after the start.
    """
    start = datetime.datetime.combine(day, datetime.time.min, tzinfo=tz)
    return start, start + datetime.timedelta(hours=24)


def week_start(day: datetime.date, first_weekday: int = MONDAY) -> datetime.date:
    """Step back to the most recent occurrence of ``first_weekday``.

    Args:
        day: Any date in the week
        first_weekday: 0 for Monday through 6 for Sunday

    Returns:
        The first day of the week containing ``day`` (``day`` itself when it
        already falls on ``first_weekday``)
    """
    if not 0 <= first_weekday <= 6:
        raise ValueError(f"first_weekday must be in 0..6, got {first_weekday}")
    delta = (day.weekday() - first_weekday) % 7
    return day - datetime.timedelta(days=delta)


def add_days(day: datetime.date, n: int) -> datetime.date:
    return day + datetime.timedelta(days=n)


def add_months(day: datetime.date, n: int) -> datetime.date:
    """Shift a date by ``n`` months.

    The day-of-month is kept when valid in the target month and otherwise
    clamped to that month's last day, so Jan 31 + 1 month is Feb 28 (or 29).
    """
    month_index = day.month - 1 + n
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def hours_since(origin: datetime.datetime, instant: datetime.datetime) -> float:
    """Fractional hours from ``origin`` to ``instant`` (negative when before)."""
    return (instant - origin).total_seconds() / 3600.0
