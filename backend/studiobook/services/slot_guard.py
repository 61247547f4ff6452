# backend/studiobook/services/slot_guard.py
"""
Slot Guard for the studio calendar

Composes shift coverage, blocked time, appointment overlap and booking policy:
- ``offerable_slots`` lists what a client can be shown
- ``ensure_slot_available`` re-checks a chosen slot against fresh
  snapshots right before the appointment store commits it

The check and the write happen against an external store in two steps, so
two clients can both be shown the last slot. Whoever commits second fails
the re-check here and gets a retryable SlotNoLongerAvailableException.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Iterable, List, Optional, Tuple

from ..core.exceptions import NotFoundException, SlotNoLongerAvailableException
from ..core.timezone_utils import TimezoneLike, studio_date
from ..schemas.appointment import Appointment, AppointmentRequest
from ..schemas.blocked_time import BlockedTime, ServiceBuffer
from ..schemas.booking_policy import PolicyConfiguration
from ..schemas.shift import ShiftInterval
from .availability_resolver import bookable_slots, covers
from .base import BaseService
from .booking_policy_engine import BookingPolicyEngine, PolicyDecision

logger = logging.getLogger(__name__)


def overlapping_appointments(
    appointments: Iterable[Appointment],
    staff_id: str,
    start: datetime,
    end: datetime,
    exclude_appointment_id: Optional[str] = None,
) -> List[Appointment]:
    """Appointments that still occupy the staff member during [start, end)."""
    return [
        appointment
        for appointment in appointments
        if appointment.staff_id == staff_id
        and appointment.blocks_time
        and appointment.id != exclude_appointment_id
        and appointment.scheduled_start < end
        and start < appointment.scheduled_end
    ]


def overlapping_blocks(
    blocked_times: Iterable[BlockedTime],
    staff_id: str,
    location_id: str,
    start: datetime,
    end: datetime,
    tz: TimezoneLike = None,
) -> List[BlockedTime]:
    """Blocks for this staff member or location that intersect [start, end)."""
    first_day = studio_date(start, tz)
    last_day = studio_date(end - timedelta(microseconds=1), tz)
    days = [first_day + timedelta(days=n) for n in range((last_day - first_day).days + 1)]

    hits = []
    for block in blocked_times:
        if not block.applies_to(staff_id, location_id):
            continue
        for day in days:
            window = block.window_on(day, tz)
            if window and window[0] < end and start < window[1]:
                hits.append(block)
                break
    return hits


def _occupied_window(
    start: datetime, duration_minutes: int, service_buffer: Optional[ServiceBuffer]
) -> Tuple[datetime, datetime]:
    end = start + timedelta(minutes=duration_minutes)
    if service_buffer is None:
        return start, end
    return service_buffer.padded(start, end)


class SlotGuard(BaseService):
    """Service for offering slots and re-validating them at commit time."""

    def __init__(self, policy_engine: Optional[BookingPolicyEngine] = None):
        super().__init__()
        self.policy_engine = policy_engine or BookingPolicyEngine()

    @BaseService.measure_operation("offerable_slots")
    def offerable_slots(
        self,
        config: PolicyConfiguration,
        shift_intervals: Iterable[ShiftInterval],
        appointments: Iterable[Appointment],
        target_date: date,
        *,
        staff_id: str,
        location_id: str,
        service_duration_minutes: int,
        now: datetime,
        tz: TimezoneLike = None,
        slot_granularity_minutes: Optional[int] = None,
        blocked_times: Iterable[BlockedTime] = (),
        service_buffer: Optional[ServiceBuffer] = None,
    ) -> List[datetime]:
        """
        Slot starts a client may book right now.

        Args:
            config: Studio booking rules
            shift_intervals: Shift snapshot
            appointments: Appointment snapshot
            target_date: Studio-local date
            staff_id: Staff member being booked
            location_id: Location being booked
            service_duration_minutes: Length of the service
            now: Evaluation instant, shared by every candidate
            tz: Studio timezone
            slot_granularity_minutes: Step between candidates
            blocked_times: Blocked time snapshot
            service_buffer: Setup and cleanup padding for the service

        Returns:
            Ascending list of bookable start times
        """
        appointments = list(appointments)
        blocked_times = list(blocked_times)
        free: List[datetime] = []
        for start in bookable_slots(
            shift_intervals,
            target_date,
            service_duration_minutes,
            slot_granularity_minutes,
            staff_id=staff_id,
            location_id=location_id,
            tz=tz,
        ):
            busy_start, busy_end = _occupied_window(start, service_duration_minutes, service_buffer)
            if overlapping_appointments(appointments, staff_id, busy_start, busy_end):
                continue
            if overlapping_blocks(blocked_times, staff_id, location_id, busy_start, busy_end, tz):
                continue
            free.append(start)
        return self.policy_engine.filter_bookable_starts(config, free, now, tz)

    @BaseService.measure_operation("ensure_slot_available")
    def ensure_slot_available(
        self,
        config: PolicyConfiguration,
        shift_intervals: Iterable[ShiftInterval],
        appointments: Iterable[Appointment],
        request: AppointmentRequest,
        now: datetime,
        tz: TimezoneLike = None,
        *,
        enforce_policy: bool = True,
        blocked_times: Iterable[BlockedTime] = (),
        service_buffer: Optional[ServiceBuffer] = None,
    ) -> None:
        """
        Re-run every availability check for a booking about to be committed.

        Bookings staff enter by hand pass ``enforce_policy=False``; they skip
        the studio's client-facing rules but still need shift coverage, no
        blocked time and a free staff member. A reschedule also re-checks the
        rescheduling deadline of the appointment being moved.

        Raises:
            NotFoundException: If the appointment being rescheduled is not in the snapshot
            SlotNoLongerAvailableException: If any check now fails
        """
        appointments = list(appointments)
        details = {
            "staff_id": request.staff_id,
            "location_id": request.location_id,
            "start": request.start.isoformat(),
            "duration_minutes": request.duration_minutes,
        }

        if not covers(
            shift_intervals,
            request.start,
            request.duration_minutes,
            target_date=studio_date(request.start, tz),
            staff_id=request.staff_id,
            location_id=request.location_id,
            tz=tz,
        ):
            self.logger.info(f"Slot lost shift coverage at commit: {details}")
            raise SlotNoLongerAvailableException(
                "The staff member is no longer working at this time",
                details={**details, "reason": "no_shift_coverage"},
            )

        busy_start, busy_end = _occupied_window(
            request.start, request.duration_minutes, service_buffer
        )
        blocks = overlapping_blocks(
            blocked_times, request.staff_id, request.location_id, busy_start, busy_end, tz
        )
        if blocks:
            self.logger.info(f"Slot blocked by {len(blocks)} block(s) at commit: {details}")
            raise SlotNoLongerAvailableException(
                "This time has been blocked off",
                details={
                    **details,
                    "reason": "blocked",
                    "blocked_time_ids": [b.id for b in blocks],
                },
            )

        clashes = overlapping_appointments(
            appointments,
            request.staff_id,
            busy_start,
            busy_end,
            exclude_appointment_id=request.replaces_appointment_id,
        )
        if clashes:
            self.logger.info(f"Slot taken by {len(clashes)} appointment(s) at commit: {details}")
            raise SlotNoLongerAvailableException(
                details={
                    **details,
                    "reason": "already_booked",
                    "conflicting_appointment_ids": [a.id for a in clashes],
                },
            )

        if not enforce_policy:
            return

        booking = self.policy_engine.evaluate_booking(
            config, request.start, now, tz, group_size=request.group_size
        )
        failures = list(zip(booking.violations, booking.reasons))
        if request.replaces_appointment_id is not None:
            moving = self._find_appointment(appointments, request.replaces_appointment_id)
            reschedule = self.policy_engine.evaluate_reschedule(config, moving, now)
            failures.extend(zip(reschedule.violations, reschedule.reasons))

        decision = PolicyDecision.from_failures(failures)
        if not decision.allowed:
            self.logger.info(f"Slot no longer allowed by booking rules at commit: {details}")
            raise SlotNoLongerAvailableException(
                decision.reason,
                details={
                    **details,
                    "reason": "policy",
                    "violations": [v.value for v in decision.violations],
                },
            )

    @staticmethod
    def _find_appointment(appointments: List[Appointment], appointment_id: str) -> Appointment:
        for appointment in appointments:
            if appointment.id == appointment_id:
                return appointment
        raise NotFoundException(
            f"Appointment {appointment_id} not found",
            code="APPOINTMENT_NOT_FOUND",
            details={"appointment_id": appointment_id},
        )
