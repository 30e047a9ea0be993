"""Tests for appointment interval arithmetic."""

from datetime import date, datetime, time

import pytest

from app.core.intervals import day_offset, end_of, interval_for, overlaps, shift_date

DAY = date(2024, 7, 1)


def test_end_of_adds_duration() -> None:
    """End instant is start plus duration."""
    assert end_of(DAY, time(9, 30), 45) == datetime(2024, 7, 1, 10, 15)


def test_overlap_is_symmetric() -> None:
    """Overlap does not depend on argument order."""
    a = interval_for(DAY, time(9, 0), 60)
    b = interval_for(DAY, time(9, 30), 60)
    c = interval_for(DAY, time(11, 0), 30)

    assert overlaps(a, b) and overlaps(b, a)
    assert not overlaps(a, c) and not overlaps(c, a)


def test_interval_overlaps_itself() -> None:
    """Any positive-length interval overlaps itself."""
    a = interval_for(DAY, time(14, 0), 1)
    assert overlaps(a, a)


def test_touching_intervals_do_not_overlap() -> None:
    """09:00-10:00 and 10:00-11:00 share only an endpoint."""
    a = interval_for(DAY, time(9, 0), 60)
    b = interval_for(DAY, time(10, 0), 60)
    assert not overlaps(a, b)
    assert not overlaps(b, a)


def test_contained_interval_overlaps() -> None:
    """A short visit inside a long one overlaps it."""
    outer = interval_for(DAY, time(8, 0), 240)
    inner = interval_for(DAY, time(9, 15), 15)
    assert overlaps(outer, inner)


def test_appointment_may_end_at_midnight() -> None:
    """Ending exactly at midnight stays within the day."""
    interval = interval_for(DAY, time(23, 0), 60)
    assert interval.end == datetime(2024, 7, 2, 0, 0)


def test_appointment_cannot_span_midnight() -> None:
    """An appointment running into the next day is rejected."""
    with pytest.raises(ValueError, match="midnight"):
        interval_for(DAY, time(23, 30), 60)


@pytest.mark.parametrize("duration", [0, -15])
def test_duration_must_be_positive(duration: int) -> None:
    """Zero or negative durations are rejected."""
    with pytest.raises(ValueError, match="positive"):
        interval_for(DAY, time(9, 0), duration)


def test_day_offset_and_shift() -> None:
    """Offsets computed between dates shift other dates consistently."""
    offset = day_offset(date(2024, 7, 1), date(2024, 7, 2))
    assert offset == 1
    assert shift_date(date(2024, 7, 15), offset) == date(2024, 7, 16)
    assert day_offset(date(2024, 3, 1), date(2024, 2, 28)) == -2
