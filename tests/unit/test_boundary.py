"""
Unit tests for wall-clock boundary helpers.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from telemetry_backend.utils.boundary import (
    day_start_ms,
    fixed_offset_timezone,
    from_milliseconds,
    get_next_minute_boundary,
    interval_end_for,
    to_milliseconds,
)

AEST = fixed_offset_timezone(600)


def local(text: str) -> datetime:
    return datetime.fromisoformat(text)


@pytest.mark.unit
@pytest.mark.parametrize(
    "now, interval, expected",
    [
        ("2025-01-15T14:23:30+10:00", 1, "2025-01-15T14:24:00+10:00"),
        ("2025-01-15T14:23:00+10:00", 1, "2025-01-15T14:24:00+10:00"),
        ("2025-01-15T14:59:45+10:00", 1, "2025-01-15T15:00:00+10:00"),
        ("2025-01-15T14:03:30+10:00", 5, "2025-01-15T14:05:00+10:00"),
        ("2025-01-15T14:05:01+10:00", 5, "2025-01-15T14:10:00+10:00"),
        ("2025-01-15T14:58:30+10:00", 5, "2025-01-15T15:00:00+10:00"),
        ("2025-01-15T14:44:59+10:00", 15, "2025-01-15T14:45:00+10:00"),
        ("2025-01-15T14:46:00+10:00", 15, "2025-01-15T15:00:00+10:00"),
        ("2025-01-15T14:31:00+10:00", 30, "2025-01-15T15:00:00+10:00"),
        ("2025-01-15T14:00:01+10:00", 60, "2025-01-15T15:00:00+10:00"),
        ("2025-01-15T23:30:00+10:00", 60, "2025-01-16T00:00:00+10:00"),
    ],
)
def test_next_boundary(now, interval, expected):
    """Test rounding up to the next multiple of the interval."""
    result = get_next_minute_boundary(interval, 600, local(now))

    assert result == local(expected)
    assert result.utcoffset() == timedelta(minutes=600)


@pytest.mark.unit
def test_next_boundary_zeroes_seconds_and_microseconds():
    """Test the example from the scheduling docs: 14:23:30 with a 5-minute period."""
    result = get_next_minute_boundary(5, 600, local("2025-01-15T14:23:45.678+10:00"))

    assert (result.hour, result.minute) == (14, 25)
    assert result.second == 0
    assert result.microsecond == 0


@pytest.mark.unit
@pytest.mark.parametrize("interval, expected_minute", [(5, 30), (1, 26)])
def test_exact_boundary_advances(interval, expected_minute):
    """Test that a time exactly on a boundary moves to the following one."""
    result = get_next_minute_boundary(interval, 600, local("2025-01-15T14:25:00.000+10:00"))

    assert result.hour == 14
    assert result.minute == expected_minute


@pytest.mark.unit
def test_midnight_rollover():
    """Test rollover into the next day."""
    result = get_next_minute_boundary(1, 600, local("2025-01-15T23:59:30+10:00"))

    assert (result.day, result.hour, result.minute, result.second) == (16, 0, 0, 0)


@pytest.mark.unit
def test_month_and_year_rollover():
    result = get_next_minute_boundary(30, 600, local("2025-12-31T23:45:00+10:00"))

    assert result == local("2026-01-01T00:00:00+10:00")


@pytest.mark.unit
@pytest.mark.parametrize("offset", [0, 600, -300, 330])
def test_offset_is_applied_to_local_clock(offset):
    """Test that boundaries are computed on the local clock for any fixed offset."""
    tz = fixed_offset_timezone(offset)
    now = datetime(2025, 1, 15, 14, 23, 30, tzinfo=tz)

    result = get_next_minute_boundary(5, offset, now)

    assert result == datetime(2025, 1, 15, 14, 25, tzinfo=tz)
    assert result.utcoffset() == timedelta(minutes=offset)


@pytest.mark.unit
def test_utc_input_is_converted_to_local_offset():
    now = datetime(2025, 1, 15, 4, 23, 30, tzinfo=timezone.utc)  # 14:23:30 at UTC+10

    result = get_next_minute_boundary(5, 600, now)

    assert (result.hour, result.minute) == (14, 25)


@pytest.mark.unit
def test_successive_boundaries_strictly_increase():
    now = local("2025-01-15T14:23:30+10:00")
    boundaries = []
    for _ in range(5):
        now = get_next_minute_boundary(5, 600, now)
        boundaries.append(now)

    assert [b.minute for b in boundaries] == [25, 30, 35, 40, 45]


@pytest.mark.unit
def test_default_now_is_in_the_future():
    before = datetime.now(timezone.utc)

    result = get_next_minute_boundary(5, 600)

    assert result > before
    assert result - before <= timedelta(minutes=5)


@pytest.mark.unit
@pytest.mark.parametrize(
    "measurement, expected",
    [
        (1, 300_000),
        (299_999, 300_000),
        (300_000, 300_000),
        (300_001, 600_000),
    ],
)
def test_interval_end_is_end_inclusive(measurement, expected):
    assert interval_end_for(measurement, 300_000) == expected


@pytest.mark.unit
def test_day_start_and_millisecond_conversion():
    start = day_start_ms(date(2025, 1, 15), 600)

    assert start == 1736863200000
    assert from_milliseconds(start, 600) == datetime(2025, 1, 15, tzinfo=AEST)
    assert to_milliseconds(from_milliseconds(start, 600)) == start
