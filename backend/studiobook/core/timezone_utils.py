"""
Timezone utilities for the studio booking engine.

Studios keep wall-clock schedules in their own zone; every instant the
engine compares is timezone-aware. Naive datetimes are treated as UTC.
"""

from datetime import date, datetime, time, tzinfo
import logging
from typing import Union

from dateutil.relativedelta import relativedelta
import pytz

from .config import settings
from .exceptions import ValidationException

logger = logging.getLogger(__name__)

TimezoneLike = Union[str, tzinfo, None]


def get_studio_timezone(tz: TimezoneLike) -> tzinfo:
    """
    Resolve a studio's timezone.

    Args:
        tz: IANA zone name, an existing tzinfo, or None for the configured default

    Returns:
        pytz timezone object

    Raises:
        ValidationException: If the zone name is unknown
    """
    if isinstance(tz, tzinfo):
        return tz
    name = (tz or "").strip() or settings.default_timezone
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown studio timezone: {name}")
        raise ValidationException(
            f"Unknown timezone: {name}", code="INVALID_TIMEZONE", details={"timezone": name}
        )


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes."""
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return pytz.UTC.localize(dt)
    return dt


def to_studio_time(dt: datetime, tz: TimezoneLike) -> datetime:
    """Convert an instant into the studio's wall-clock time."""
    return ensure_aware(dt).astimezone(get_studio_timezone(tz))


def studio_date(dt: datetime, tz: TimezoneLike) -> date:
    """Calendar day of an instant as seen in the studio."""
    return to_studio_time(dt, tz).date()


def localize_wall_time(day: date, wall_time: time, tz: TimezoneLike) -> datetime:
    """
    Build an aware datetime from a studio-local date and time.

    Wall times that fall into a DST gap are shifted forward by the zone's
    normalisation instead of raising.
    """
    zone = get_studio_timezone(tz)
    naive = datetime.combine(day, wall_time)
    if hasattr(zone, "localize"):
        return zone.normalize(zone.localize(naive))
    return naive.replace(tzinfo=zone)


def add_calendar_months(dt: datetime, months: int, tz: TimezoneLike) -> datetime:
    """
    Add whole calendar months to an instant in studio wall-clock terms.

    Day-of-month overflow is clamped to the last day of the target month
    (Jan 31 + 1 month -> Feb 28/29).
    """
    local = to_studio_time(dt, tz)
    wall = local.replace(tzinfo=None) + relativedelta(months=months)
    return localize_wall_time(wall.date(), wall.time(), tz)
