# backend/studiobook/schemas/booking_policy.py
"""
Booking rule schemas.

PolicyConfiguration mirrors the stored per-studio row. Ranges are not
enforced here: a row with out-of-range values must still load so the
policy engine can refuse to evaluate it. Writes go through
PolicyConfigurationUpdate, which does enforce ranges.
"""

from typing import Optional

from pydantic import Field

from .base import SnapshotModel, StrictRequestModel

FUTURE_BOOKING_LIMIT_MONTHS_RANGE = (1, 12)
MAX_GROUP_SIZE_RANGE = (1, 20)


class PolicyConfiguration(SnapshotModel):
    """Per-studio booking rules. Defaults match a freshly created studio."""

    studio_id: Optional[str] = None
    online_booking_enabled: bool = True

    immediate_booking_allowed: bool = True
    immediate_booking_buffer_minutes: int = 15

    future_booking_limit_months: int = 12

    allow_team_member_selection: bool = True

    allow_group_appointments: bool = False
    max_group_size: int = 1

    cancellation_allowed: bool = True
    cancellation_buffer_hours: int = 24

    rescheduling_allowed: bool = True
    rescheduling_buffer_hours: int = 24


class PolicyConfigurationUpdate(StrictRequestModel):
    """
    Partial update from the settings surface.

    Only fields explicitly set are applied, so switching a toggle off keeps
    its paired buffer for when the toggle comes back on.
    """

    online_booking_enabled: Optional[bool] = None
    immediate_booking_allowed: Optional[bool] = None
    immediate_booking_buffer_minutes: Optional[int] = Field(None, ge=0)
    future_booking_limit_months: Optional[int] = Field(
        None, ge=FUTURE_BOOKING_LIMIT_MONTHS_RANGE[0], le=FUTURE_BOOKING_LIMIT_MONTHS_RANGE[1]
    )
    allow_team_member_selection: Optional[bool] = None
    allow_group_appointments: Optional[bool] = None
    max_group_size: Optional[int] = Field(
        None, ge=MAX_GROUP_SIZE_RANGE[0], le=MAX_GROUP_SIZE_RANGE[1]
    )
    cancellation_allowed: Optional[bool] = None
    cancellation_buffer_hours: Optional[int] = Field(None, ge=0)
    rescheduling_allowed: Optional[bool] = None
    rescheduling_buffer_hours: Optional[int] = Field(None, ge=0)
