# backend/studiobook/schemas/shift.py
"""
Shift schemas for the studio staff calendar.

A ShiftInterval is one dated block of working time at one location. A
RegularShiftTemplate describes a repeating week and is expanded into
ShiftIntervals by the shift registry; the dated rows never point back at
the template, so editing one row leaves the template alone.

Wall-clock times are studio-local. An end time of 00:00 means the shift
runs to midnight.
"""

import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator
import ulid

from ..core.enums import RecurrencePattern, ShiftStatus, TemplateEnd
from ..core.timezone_utils import TimezoneLike, localize_wall_time
from ..utils.time_utils import format_time_range, time_to_minutes
from .base import SnapshotModel, StrictRequestModel

DateType = datetime.date
TimeType = datetime.time


def _check_time_order(start_time: TimeType, end_time: TimeType) -> None:
    if time_to_minutes(end_time, is_end_time=True) <= time_to_minutes(start_time):
        raise ValueError("End time must be after start time")


class ShiftInterval(SnapshotModel):
    """A dated working block for one staff member at one location."""

    id: str = Field(default_factory=lambda: str(ulid.ULID()))
    staff_id: str
    location_id: str
    shift_date: DateType
    start_time: TimeType
    end_time: TimeType
    status: ShiftStatus = ShiftStatus.SCHEDULED
    is_recurring: bool = False
    recurring_pattern: Optional[RecurrencePattern] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _validate_time_order(self) -> "ShiftInterval":
        _check_time_order(self.start_time, self.end_time)
        return self

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time, is_end_time=True)

    @property
    def is_working(self) -> bool:
        return self.status.is_working

    @property
    def time_range(self) -> str:
        return format_time_range(self.start_time, self.end_time)

    def overlaps(self, other: "ShiftInterval") -> bool:
        """Same staff member, same day, intersecting half-open ranges."""
        return (
            self.staff_id == other.staff_id
            and self.shift_date == other.shift_date
            and self.start_minutes < other.end_minutes
            and other.start_minutes < self.end_minutes
        )

    def starts_at(self, tz: TimezoneLike) -> datetime.datetime:
        return localize_wall_time(self.shift_date, self.start_time, tz)

    def ends_at(self, tz: TimezoneLike) -> datetime.datetime:
        if self.end_minutes == 24 * 60:
            return localize_wall_time(
                self.shift_date + datetime.timedelta(days=1), datetime.time(0, 0), tz
            )
        return localize_wall_time(self.shift_date, self.end_time, tz)


class DayShift(StrictRequestModel):
    """One working block inside a weekday of a regular template."""

    start_time: TimeType
    end_time: TimeType
    location_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _validate_time_order(self) -> "DayShift":
        _check_time_order(self.start_time, self.end_time)
        return self


class RegularShiftTemplate(StrictRequestModel):
    """
    Repeating weekly shifts for a staff member.

    ``weekly`` is keyed by ISO-style weekday index as returned by
    ``date.weekday()`` (Monday=0 ... Sunday=6). Missing or empty days are off.
    """

    staff_id: str = Field(..., min_length=1)
    weekly: Dict[int, List[DayShift]]
    pattern: RecurrencePattern = RecurrencePattern.EVERY_WEEK
    start_date: DateType
    end: TemplateEnd = TemplateEnd.NEVER
    end_date: Optional[DateType] = None

    @field_validator("weekly")
    @classmethod
    def _validate_weekdays(cls, v: Dict[int, List[DayShift]]) -> Dict[int, List[DayShift]]:
        bad = [day for day in v if not 0 <= day <= 6]
        if bad:
            raise ValueError(f"Weekday keys must be 0-6 (Monday=0), got {sorted(bad)}")
        return v

    @model_validator(mode="after")
    def _validate_end(self) -> "RegularShiftTemplate":
        if self.end == TemplateEnd.SPECIFIC_DATE:
            if self.end_date is None:
                raise ValueError("end_date is required when the template ends on a specific date")
            if self.end_date < self.start_date:
                raise ValueError("end_date must not be before start_date")
        return self

    def shifts_for_weekday(self, weekday: int) -> List[DayShift]:
        return self.weekly.get(weekday, [])

    def summary(self) -> Dict[str, Any]:
        return {
            "staff_id": self.staff_id,
            "pattern": self.pattern.value,
            "start_date": self.start_date.isoformat(),
            "end": self.end.value,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "working_days": sorted(day for day, shifts in self.weekly.items() if shifts),
        }
