# backend/studiobook/core/enums.py
"""
Core enums for the studio booking engine.

Values mirror the strings stored by the studio data service so rows can be
validated straight into schemas without translation.
"""

from enum import Enum


class ShiftStatus(str, Enum):
    """Lifecycle of a single dated shift."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_working(self) -> bool:
        """Whether the shift still counts as staffed time."""
        return self in WORKING_SHIFT_STATUSES


WORKING_SHIFT_STATUSES = frozenset({ShiftStatus.SCHEDULED, ShiftStatus.CONFIRMED})


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    # Old row left behind when an appointment is moved
    RESCHEDULED = "rescheduled"


BLOCKING_APPOINTMENT_STATUSES = frozenset(
    {
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.ARRIVED,
        AppointmentStatus.IN_PROGRESS,
    }
)


class BlockType(str, Enum):
    """Why a stretch of time is closed to bookings."""

    BREAK = "break"
    LUNCH = "lunch"
    MEETING = "meeting"
    TRAINING = "training"
    HOLIDAY = "holiday"
    SICK = "sick"
    PERSONAL = "personal"
    MAINTENANCE = "maintenance"


class RecurrencePattern(str, Enum):
    """Repeat cadence for a regular shift template."""

    EVERY_WEEK = "every-week"
    EVERY_2_WEEKS = "every-2-weeks"
    EVERY_3_WEEKS = "every-3-weeks"
    EVERY_4_WEEKS = "every-4-weeks"

    @property
    def week_interval(self) -> int:
        return {
            RecurrencePattern.EVERY_WEEK: 1,
            RecurrencePattern.EVERY_2_WEEKS: 2,
            RecurrencePattern.EVERY_3_WEEKS: 3,
            RecurrencePattern.EVERY_4_WEEKS: 4,
        }[self]


class TemplateEnd(str, Enum):
    NEVER = "never"
    SPECIFIC_DATE = "specific-date"


class PolicyViolation(str, Enum):
    """
    Reasons a booking action was refused by studio configuration.

    These are expected outcomes shown to clients, not system errors.
    """

    ONLINE_BOOKING_DISABLED = "online_booking_disabled"
    OUTSIDE_IMMEDIATE_WINDOW = "outside_immediate_window"
    BEYOND_FUTURE_HORIZON = "beyond_future_horizon"
    PAST_CANCELLATION_DEADLINE = "past_cancellation_deadline"
    PAST_RESCHEDULE_DEADLINE = "past_reschedule_deadline"
    GROUP_SIZE_EXCEEDED = "group_size_exceeded"
