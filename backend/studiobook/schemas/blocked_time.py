# backend/studiobook/schemas/blocked_time.py
"""
Blocked time and per-service buffers.

A block closes time to bookings for one staff member, one location, or the
whole studio when neither is set. It spans ``start_date`` to ``end_date``
inclusive; an all-day block covers each of those days entirely, while a
timed block covers the same wall-clock window on each day.
"""

import datetime
from typing import Optional, Tuple

from pydantic import Field, model_validator
import ulid

from ..core.enums import BlockType
from ..core.timezone_utils import TimezoneLike, localize_wall_time
from ..utils.time_utils import time_to_minutes
from .base import SnapshotModel

DateType = datetime.date
TimeType = datetime.time


class BlockedTime(SnapshotModel):
    id: str = Field(default_factory=lambda: str(ulid.ULID()))
    studio_id: Optional[str] = None
    staff_id: Optional[str] = None
    location_id: Optional[str] = None
    title: str = ""
    block_type: BlockType = BlockType.PERSONAL
    start_date: DateType
    end_date: DateType
    start_time: Optional[TimeType] = None
    end_time: Optional[TimeType] = None
    is_all_day: bool = False

    @model_validator(mode="after")
    def _validate_span(self) -> "BlockedTime":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if not self.is_all_day:
            if self.start_time is None or self.end_time is None:
                raise ValueError("Timed blocks need both start_time and end_time")
            if time_to_minutes(self.end_time, is_end_time=True) <= time_to_minutes(
                self.start_time
            ):
                raise ValueError("End time must be after start time")
        return self

    def applies_to(self, staff_id: str, location_id: str) -> bool:
        return (self.staff_id is None or self.staff_id == staff_id) and (
            self.location_id is None or self.location_id == location_id
        )

    def window_on(
        self, day: DateType, tz: TimezoneLike
    ) -> Optional[Tuple[datetime.datetime, datetime.datetime]]:
        """The blocked instants on one studio-local day, or None if the day is outside the block."""
        if not self.start_date <= day <= self.end_date:
            return None
        next_day = day + datetime.timedelta(days=1)
        if self.is_all_day:
            return (
                localize_wall_time(day, datetime.time(0, 0), tz),
                localize_wall_time(next_day, datetime.time(0, 0), tz),
            )
        start = localize_wall_time(day, self.start_time, tz)
        if time_to_minutes(self.end_time, is_end_time=True) == 24 * 60:
            return start, localize_wall_time(next_day, datetime.time(0, 0), tz)
        return start, localize_wall_time(day, self.end_time, tz)


class ServiceBuffer(SnapshotModel):
    """
    Setup and cleanup time around a service.

    Stored rows use ``setup_time``/``cleanup_time`` in minutes. The padding
    must be free of other appointments and blocks, but may run outside the
    staff member's shift.
    """

    service_id: str
    setup_minutes: int = Field(0, ge=0, alias="setup_time")
    cleanup_minutes: int = Field(0, ge=0, alias="cleanup_time")

    def padded(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> Tuple[datetime.datetime, datetime.datetime]:
        return (
            start - datetime.timedelta(minutes=self.setup_minutes),
            end + datetime.timedelta(minutes=self.cleanup_minutes),
        )
