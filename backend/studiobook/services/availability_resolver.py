# backend/studiobook/services/availability_resolver.py
"""
Availability Resolver for the studio calendar

Turns a staff member's shifts on one day into the start times at which a
service of a given length fits entirely inside working time.

The resolver knows nothing about booking policy. Callers intersect its
output with the policy engine when serving clients, and may skip that step
for bookings staff create by hand; shift coverage applies either way.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Iterable, Iterator, List, Optional, Tuple

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..core.timezone_utils import TimezoneLike, ensure_aware
from ..schemas.shift import ShiftInterval

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Merge overlapping and touching [start, end) intervals.

    Returns:
        Disjoint intervals sorted by start
    """
    merged: List[Interval] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            if end > merged[-1][1]:
                merged[-1] = (merged[-1][0], end)
            continue
        merged.append((start, end))
    return merged


def working_intervals(
    shift_intervals: Iterable[ShiftInterval],
    target_date: date,
    tz: TimezoneLike = None,
    *,
    staff_id: Optional[str] = None,
    location_id: Optional[str] = None,
) -> List[Interval]:
    """Merged working time for the matching shifts on one date."""
    selected = [
        (shift.starts_at(tz), shift.ends_at(tz))
        for shift in shift_intervals
        if shift.shift_date == target_date
        and shift.is_working
        and (staff_id is None or shift.staff_id == staff_id)
        and (location_id is None or shift.location_id == location_id)
    ]
    merged = merge_intervals(selected)
    if len(merged) < len(selected):
        logger.debug(
            f"Merged {len(selected)} shifts into {len(merged)} intervals "
            f"for staff {staff_id} on {target_date}"
        )
    return merged


class BookableSlots:
    """
    Lazy, restartable sequence of slot start times.

    Each iteration walks the merged intervals afresh, so the same object can
    be consumed more than once.
    """

    def __init__(self, intervals: List[Interval], duration: timedelta, step: timedelta):
        self._intervals = intervals
        self._duration = duration
        self._step = step

    def __iter__(self) -> Iterator[datetime]:
        for start, end in self._intervals:
            candidate = start
            while candidate + self._duration <= end:
                zone = candidate.tzinfo
                # pytz keeps the offset fixed across arithmetic; re-derive it after a DST change
                yield zone.normalize(candidate) if hasattr(zone, "normalize") else candidate
                candidate += self._step

    def __repr__(self) -> str:
        return (
            f"BookableSlots(intervals={len(self._intervals)}, "
            f"duration={self._duration}, step={self._step})"
        )


def _require_positive(name: str, value: int) -> None:
    if value <= 0:
        raise ValidationException(
            f"{name} must be positive", code="INVALID_DURATION", details={name: value}
        )


def bookable_slots(
    shift_intervals: Iterable[ShiftInterval],
    target_date: date,
    service_duration_minutes: int,
    slot_granularity_minutes: Optional[int] = None,
    *,
    staff_id: Optional[str] = None,
    location_id: Optional[str] = None,
    tz: TimezoneLike = None,
) -> BookableSlots:
    """
    Start times on ``target_date`` where the service fits inside a shift.

    Args:
        shift_intervals: Shift snapshot to search
        target_date: Studio-local date
        service_duration_minutes: Length of the service
        slot_granularity_minutes: Step between candidates (settings default when None)
        staff_id: Restrict to one staff member
        location_id: Restrict to one location
        tz: Studio timezone the shift wall times are in

    Returns:
        BookableSlots in ascending order; empty if nothing fits

    Raises:
        ValidationException: If duration or granularity is not positive
    """
    if slot_granularity_minutes is None:
        slot_granularity_minutes = settings.default_slot_granularity_minutes
    _require_positive("service_duration_minutes", service_duration_minutes)
    _require_positive("slot_granularity_minutes", slot_granularity_minutes)

    intervals = working_intervals(
        list(shift_intervals), target_date, tz, staff_id=staff_id, location_id=location_id
    )
    return BookableSlots(
        intervals,
        timedelta(minutes=service_duration_minutes),
        timedelta(minutes=slot_granularity_minutes),
    )


def covers(
    shift_intervals: Iterable[ShiftInterval],
    start: datetime,
    duration_minutes: int,
    *,
    target_date: date,
    staff_id: str,
    location_id: str,
    tz: TimezoneLike = None,
) -> bool:
    """Whether [start, start + duration) lies inside one merged working interval."""
    _require_positive("duration_minutes", duration_minutes)
    start = ensure_aware(start)
    end = start + timedelta(minutes=duration_minutes)
    return any(
        interval_start <= start and end <= interval_end
        for interval_start, interval_end in working_intervals(
            shift_intervals, target_date, tz, staff_id=staff_id, location_id=location_id
        )
    )
