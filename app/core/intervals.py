"""Time interval arithmetic for appointments on a single calendar day."""

from datetime import date, datetime, time, timedelta
from typing import NamedTuple


class TimeInterval(NamedTuple):
    """Half-open interval ``[start, end)`` of an appointment."""

    start: datetime
    end: datetime


def end_of(day: date, start: time, duration_minutes: int) -> datetime:
    """Return the instant an appointment starting at ``start`` ends."""
    return datetime.combine(day, start) + timedelta(minutes=duration_minutes)


def interval_for(day: date, start: time, duration_minutes: int) -> TimeInterval:
    """
    Build the interval occupied by an appointment.

    Raises:
        ValueError: If the duration is not positive or the appointment
            would run past midnight
    """
    if duration_minutes <= 0:
        raise ValueError("Duration must be a positive number of minutes")

    begin = datetime.combine(day, start)
    finish = end_of(day, start, duration_minutes)
    if finish > datetime.combine(day + timedelta(days=1), time.min):
        raise ValueError("Appointments cannot run past midnight")

    return TimeInterval(begin, finish)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Check whether two intervals overlap; touching endpoints do not."""
    return a.start < b.end and b.start < a.end


def day_offset(source: date, target: date) -> int:
    """Whole days between two dates."""
    return (target - source).days


def shift_date(day: date, offset_days: int) -> date:
    """Move a date by a whole number of days."""
    return day + timedelta(days=offset_days)
