# backend/studiobook/schemas/appointment.py
"""
Appointment references.

Appointments are owned by the appointment store; the engine only reads
their timing to decide what a client may still do with them.
"""

import datetime
from typing import Optional

from pydantic import Field, field_validator
import ulid

from ..core.enums import BLOCKING_APPOINTMENT_STATUSES, AppointmentStatus
from ..core.timezone_utils import ensure_aware
from .base import SnapshotModel, StrictRequestModel


class Appointment(SnapshotModel):
    id: str = Field(default_factory=lambda: str(ulid.ULID()))
    studio_id: Optional[str] = None
    staff_id: str
    location_id: str
    scheduled_start: datetime.datetime
    created_at: datetime.datetime
    duration_minutes: int = Field(..., gt=0)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    group_size: int = Field(default=1, ge=1)

    @field_validator("scheduled_start", "created_at")
    @classmethod
    def _ensure_aware(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_aware(v)

    @property
    def scheduled_end(self) -> datetime.datetime:
        return self.scheduled_start + datetime.timedelta(minutes=self.duration_minutes)

    @property
    def blocks_time(self) -> bool:
        """Whether the appointment still occupies its staff member's time."""
        return self.status in BLOCKING_APPOINTMENT_STATUSES


class AppointmentRequest(StrictRequestModel):
    """A proposed booking about to be committed."""

    staff_id: str = Field(..., min_length=1)
    location_id: str = Field(..., min_length=1)
    start: datetime.datetime
    duration_minutes: int = Field(..., gt=0)
    group_size: int = Field(default=1)
    replaces_appointment_id: Optional[str] = Field(
        default=None,
        description="Appointment being rescheduled; ignored when checking overlaps",
    )

    @field_validator("start")
    @classmethod
    def _ensure_aware(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_aware(v)

    @property
    def end(self) -> datetime.datetime:
        return self.start + datetime.timedelta(minutes=self.duration_minutes)
