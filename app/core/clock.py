"""Wall-clock helpers in the clinic's timezone."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from app.config import settings


def clinic_now() -> datetime:
    """Current time where the clinic operates."""
    return datetime.now(ZoneInfo(settings.clinic_timezone))


def clinic_today() -> date:
    """Current calendar date where the clinic operates."""
    return clinic_now().date()


def format_stamp(moment: datetime) -> str:
    """Render a timestamp the way audit notes display it."""
    return moment.strftime("%d/%m/%Y at %H:%M")


def to_clinic_time(moment: datetime) -> datetime:
    """Convert a stored timestamp to clinic time; naive values are UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(ZoneInfo(settings.clinic_timezone))
