"""
Wall-clock boundary helpers.

All scheduling and interval bucketing works on millisecond timestamps and a
fixed UTC offset (no DST), so that every system sharing an interval lands on
the same local boundaries.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from telemetry_backend.constants import MS_PER_MINUTE


def fixed_offset_timezone(utc_offset_minutes: int) -> timezone:
    """Return a fixed-offset tzinfo for the given UTC offset in minutes."""
    return timezone(timedelta(minutes=utc_offset_minutes))


def to_milliseconds(dt: datetime) -> int:
    """Convert an aware datetime to Unix milliseconds. Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return delta // timedelta(milliseconds=1)


def from_milliseconds(ms: int, utc_offset_minutes: int = 0) -> datetime:
    """Convert Unix milliseconds to an aware datetime at the given UTC offset."""
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (epoch + timedelta(milliseconds=ms)).astimezone(fixed_offset_timezone(utc_offset_minutes))


def get_next_minute_boundary(
    interval_minutes: int,
    utc_offset_minutes: int,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Get the next wall-clock instant that is a whole multiple of the interval.

    Boundaries are aligned to local midnight at the given offset, so a
    5-minute interval yields :00, :05, :10 ... and a 60-minute interval the
    top of every local hour. A time exactly on a boundary advances to the
    following one, which keeps successive schedules strictly increasing.

    Args:
        interval_minutes: Period length in minutes (must be positive)
        utc_offset_minutes: Fixed local offset from UTC, e.g. 600 for UTC+10
        now: Reference instant, defaults to the current time

    Returns:
        Aware datetime at the local offset with seconds and microseconds zeroed
    """
    if now is None:
        now = datetime.now(timezone.utc)

    interval_ms = interval_minutes * MS_PER_MINUTE
    offset_ms = utc_offset_minutes * MS_PER_MINUTE

    local_ms = to_milliseconds(now) + offset_ms
    next_local_ms = (local_ms // interval_ms + 1) * interval_ms

    return from_milliseconds(next_local_ms - offset_ms, utc_offset_minutes)


def interval_end_for(measurement_time_ms: int, interval_ms: int) -> int:
    """
    Get the end of the interval containing a measurement.

    Intervals are end-inclusive: a reading exactly on a boundary belongs to
    the interval ending there.
    """
    return -(-measurement_time_ms // interval_ms) * interval_ms


def day_start_ms(day: date, utc_offset_minutes: int) -> int:
    """Unix milliseconds of local midnight for a calendar day at the given offset."""
    midnight = datetime.combine(day, time.min, tzinfo=fixed_offset_timezone(utc_offset_minutes))
    return to_milliseconds(midnight)


def format_local_time(ms: int, utc_offset_minutes: int) -> str:
    return from_milliseconds(ms, utc_offset_minutes).strftime("%Y-%m-%d %H:%M:%S%z")
