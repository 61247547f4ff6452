"""
Tests for SlotGuard: offering slots to clients and re-validating them at
commit time so two clients cannot both take the last slot.
"""

from datetime import date, datetime, time, timedelta

import pytest

from studiobook.core.enums import AppointmentStatus, BlockType, PolicyViolation
from studiobook.core.exceptions import (
    InvalidConfigurationException,
    NotFoundException,
    SlotNoLongerAvailableException,
)
from studiobook.monitoring.prometheus_metrics import REGISTRY
from studiobook.schemas.appointment import Appointment, AppointmentRequest
from studiobook.schemas.blocked_time import BlockedTime, ServiceBuffer
from studiobook.schemas.booking_policy import PolicyConfiguration
from studiobook.services.slot_guard import SlotGuard, overlapping_appointments, overlapping_blocks

pytestmark = pytest.mark.unit

TZ = "America/New_York"
DAY = date(2024, 1, 10)


@pytest.fixture
def guard():
    return SlotGuard()


@pytest.fixture
def shifts(make_shift):
    return [make_shift("09:00", "12:00")]


@pytest.fixture
def config():
    return PolicyConfiguration(immediate_booking_buffer_minutes=60)


def _booked(start: datetime, minutes: int = 60, **extra) -> Appointment:
    return Appointment(
        staff_id="staff-1",
        location_id="loc-1",
        scheduled_start=start,
        created_at=start - timedelta(days=1),
        duration_minutes=minutes,
        **extra,
    )


def _request(start: datetime, **extra) -> AppointmentRequest:
    return AppointmentRequest(
        staff_id="staff-1", location_id="loc-1", start=start, duration_minutes=60, **extra
    )


def _block(**fields) -> BlockedTime:
    values = {"start_date": DAY, "end_date": DAY, "block_type": BlockType.LUNCH}
    values.update(fields)
    return BlockedTime(**values)


def _offer(guard, config, shifts, appointments, now, **extra):
    return guard.offerable_slots(
        config,
        shifts,
        appointments,
        DAY,
        staff_id="staff-1",
        location_id="loc-1",
        service_duration_minutes=60,
        now=now,
        tz=TZ,
        **extra,
    )


class TestOfferableSlots:
    def test_removes_booked_and_too_soon_slots(self, guard, config, shifts, local):
        appointments = [_booked(local(2024, 1, 10, 11, 0))]

        offered = guard.offerable_slots(
            config,
            shifts,
            appointments,
            DAY,
            staff_id="staff-1",
            location_id="loc-1",
            service_duration_minutes=60,
            now=local(2024, 1, 10, 8, 30),
            tz=TZ,
        )

        # 09:00 is inside the 60 minute buffer, 10:30 and 11:00 overlap the booking
        assert offered == [local(2024, 1, 10, 9, 30), local(2024, 1, 10, 10, 0)]

    def test_cancelled_appointments_do_not_block(self, guard, config, shifts, local):
        appointments = [_booked(local(2024, 1, 10, 11, 0), status=AppointmentStatus.CANCELLED)]

        offered = guard.offerable_slots(
            config,
            shifts,
            appointments,
            DAY,
            staff_id="staff-1",
            location_id="loc-1",
            service_duration_minutes=60,
            now=local(2024, 1, 9, 8, 0),
            tz=TZ,
        )

        assert offered[-1] == local(2024, 1, 10, 11, 0)


class TestEnsureSlotAvailable:
    def test_passes_when_free(self, guard, config, shifts, local):
        guard.ensure_slot_available(
            config, shifts, [], _request(local(2024, 1, 10, 10, 0)), local(2024, 1, 9, 12, 0), TZ
        )

    def test_second_commit_loses(self, guard, config, shifts, local):
        now = local(2024, 1, 9, 12, 0)
        start = local(2024, 1, 10, 10, 0)
        guard.ensure_slot_available(config, shifts, [], _request(start), now, TZ)
        winner = _booked(start)

        with pytest.raises(SlotNoLongerAvailableException) as exc_info:
            guard.ensure_slot_available(config, shifts, [winner], _request(start), now, TZ)

        error = exc_info.value
        assert error.retryable is True
        assert error.code == "SLOT_NO_LONGER_AVAILABLE"
        assert error.details["reason"] == "already_booked"
        assert error.details["conflicting_appointment_ids"] == [winner.id]
        http = error.to_http_exception()
        assert http.status_code == 409
        assert http.detail["retryable"] is True

    def test_shift_removed_since_offer(self, guard, config, local):
        with pytest.raises(SlotNoLongerAvailableException) as exc_info:
            guard.ensure_slot_available(
                config, [], [], _request(local(2024, 1, 10, 10, 0)), local(2024, 1, 9, 12, 0), TZ
            )

        assert exc_info.value.details["reason"] == "no_shift_coverage"

    def test_policy_rechecked_with_fresh_now(self, guard, config, shifts, local):
        start = local(2024, 1, 10, 10, 0)

        with pytest.raises(SlotNoLongerAvailableException) as exc_info:
            guard.ensure_slot_available(
                config, shifts, [], _request(start), local(2024, 1, 10, 9, 30), TZ
            )

        assert exc_info.value.details["reason"] == "policy"
        assert exc_info.value.details["violations"] == [
            PolicyViolation.OUTSIDE_IMMEDIATE_WINDOW.value
        ]

    def test_group_size_rechecked(self, guard, config, shifts, local):
        with pytest.raises(SlotNoLongerAvailableException) as exc_info:
            guard.ensure_slot_available(
                config,
                shifts,
                [],
                _request(local(2024, 1, 10, 10, 0), group_size=3),
                local(2024, 1, 9, 12, 0),
                TZ,
            )

        assert exc_info.value.details["violations"] == [PolicyViolation.GROUP_SIZE_EXCEEDED.value]

    def test_manual_booking_bypasses_policy_but_not_shifts(self, guard, shifts, local):
        closed = PolicyConfiguration(online_booking_enabled=False)
        now = local(2024, 1, 10, 9, 55)

        guard.ensure_slot_available(
            closed, shifts, [], _request(local(2024, 1, 10, 10, 0)), now, TZ, enforce_policy=False
        )
        with pytest.raises(SlotNoLongerAvailableException):
            guard.ensure_slot_available(
                closed,
                shifts,
                [],
                _request(local(2024, 1, 10, 11, 30)),
                now,
                TZ,
                enforce_policy=False,
            )

    def test_reschedule_ignores_the_appointment_being_moved(self, guard, config, shifts, local):
        current = _booked(local(2024, 1, 10, 10, 0))

        guard.ensure_slot_available(
            config,
            shifts,
            [current],
            _request(local(2024, 1, 10, 10, 30), replaces_appointment_id=current.id),
            local(2024, 1, 8, 12, 0),
            TZ,
        )


class TestOverlappingAppointments:
    def test_back_to_back_does_not_overlap(self, local):
        booked = [_booked(local(2024, 1, 10, 9, 0))]

        assert overlapping_appointments(
            booked, "staff-1", local(2024, 1, 10, 10, 0), local(2024, 1, 10, 11, 0)
        ) == []

    def test_other_staff_ignored(self, local):
        booked = [_booked(local(2024, 1, 10, 9, 0))]

        assert overlapping_appointments(
            booked, "staff-2", local(2024, 1, 10, 9, 0), local(2024, 1, 10, 10, 0)
        ) == []


class TestRescheduleAtCommit:
    def test_deadline_passed_since_offer(self, guard, config, shifts, local):
        current = _booked(local(2024, 1, 10, 11, 0))

        with pytest.raises(SlotNoLongerAvailableException) as exc_info:
            guard.ensure_slot_available(
                config,
                shifts,
                [current],
                _request(local(2024, 1, 10, 10, 0), replaces_appointment_id=current.id),
                local(2024, 1, 10, 9, 0),
                TZ,
            )

        assert exc_info.value.details["reason"] == "policy"
        assert exc_info.value.details["violations"] == [
            PolicyViolation.PAST_RESCHEDULE_DEADLINE.value
        ]

    def test_rescheduling_turned_off(self, guard, shifts, local):
        closed = PolicyConfiguration(rescheduling_allowed=False)
        current = _booked(local(2024, 1, 10, 11, 0))

        with pytest.raises(SlotNoLongerAvailableException):
            guard.ensure_slot_available(
                closed,
                shifts,
                [current],
                _request(local(2024, 1, 10, 9, 0), replaces_appointment_id=current.id),
                local(2024, 1, 5, 9, 0),
                TZ,
            )

    def test_unknown_appointment(self, guard, config, shifts, local):
        with pytest.raises(NotFoundException) as exc_info:
            guard.ensure_slot_available(
                config,
                shifts,
                [],
                _request(local(2024, 1, 10, 10, 0), replaces_appointment_id="missing"),
                local(2024, 1, 8, 12, 0),
                TZ,
            )

        assert exc_info.value.code == "APPOINTMENT_NOT_FOUND"
        assert exc_info.value.to_http_exception().status_code == 404

    def test_staff_can_move_late_appointments_by_hand(self, guard, config, shifts, local):
        current = _booked(local(2024, 1, 10, 11, 0))

        guard.ensure_slot_available(
            config,
            shifts,
            [current],
            _request(local(2024, 1, 10, 10, 0), replaces_appointment_id=current.id),
            local(2024, 1, 10, 9, 0),
            TZ,
            enforce_policy=False,
        )


class TestBlockedTime:
    def test_lunch_block_removes_overlapping_slots(self, guard, config, shifts, local):
        lunch = _block(staff_id="staff-1", start_time=time(10, 0), end_time=time(10, 30))

        offered = _offer(
            guard, config, shifts, [], local(2024, 1, 9, 8, 0), blocked_times=[lunch]
        )

        assert offered == [
            local(2024, 1, 10, 9, 0),
            local(2024, 1, 10, 10, 30),
            local(2024, 1, 10, 11, 0),
        ]

    def test_all_day_location_block_closes_the_day(self, guard, config, shifts, local):
        holiday = _block(location_id="loc-1", is_all_day=True, block_type=BlockType.HOLIDAY)

        offered = _offer(
            guard, config, shifts, [], local(2024, 1, 9, 8, 0), blocked_times=[holiday]
        )

        assert offered == []

    def test_blocks_for_others_are_ignored(self, guard, config, shifts, local):
        blocks = [
            _block(staff_id="staff-2", is_all_day=True),
            _block(location_id="loc-2", is_all_day=True),
            _block(
                is_all_day=True,
                start_date=DAY + timedelta(days=1),
                end_date=DAY + timedelta(days=1),
            ),
        ]

        offered = _offer(guard, config, shifts, [], local(2024, 1, 9, 8, 0), blocked_times=blocks)

        assert len(offered) == 5

    def test_block_added_since_offer(self, guard, config, shifts, local):
        meeting = _block(
            staff_id="staff-1",
            start_time=time(10, 30),
            end_time=time(11, 0),
            block_type=BlockType.MEETING,
        )

        with pytest.raises(SlotNoLongerAvailableException) as exc_info:
            guard.ensure_slot_available(
                config,
                shifts,
                [],
                _request(local(2024, 1, 10, 10, 0)),
                local(2024, 1, 9, 12, 0),
                TZ,
                blocked_times=[meeting],
            )

        assert exc_info.value.details["reason"] == "blocked"
        assert exc_info.value.details["blocked_time_ids"] == [meeting.id]

    def test_blocks_apply_to_manual_bookings(self, guard, config, shifts, local):
        sick = _block(staff_id="staff-1", is_all_day=True, block_type=BlockType.SICK)

        with pytest.raises(SlotNoLongerAvailableException):
            guard.ensure_slot_available(
                config,
                shifts,
                [],
                _request(local(2024, 1, 10, 10, 0)),
                local(2024, 1, 9, 12, 0),
                TZ,
                enforce_policy=False,
                blocked_times=[sick],
            )

    def test_multi_day_timed_block_repeats_each_day(self, local):
        daily_lunch = _block(
            start_date=date(2024, 1, 8),
            end_date=date(2024, 1, 12),
            start_time=time(12, 0),
            end_time=time(13, 0),
        )

        hits = overlapping_blocks(
            [daily_lunch],
            "staff-1",
            "loc-1",
            local(2024, 1, 11, 12, 30),
            local(2024, 1, 11, 13, 30),
            TZ,
        )
        misses = overlapping_blocks(
            [daily_lunch],
            "staff-1",
            "loc-1",
            local(2024, 1, 11, 13, 0),
            local(2024, 1, 11, 14, 0),
            TZ,
        )

        assert hits == [daily_lunch]
        assert misses == []


class TestServiceBuffer:
    def test_cleanup_time_must_be_free(self, guard, config, shifts, local):
        appointments = [_booked(local(2024, 1, 10, 11, 0))]
        buffer = ServiceBuffer(service_id="svc-1", setup_time=0, cleanup_time=15)

        offered = _offer(
            guard, config, shifts, appointments, local(2024, 1, 9, 8, 0), service_buffer=buffer
        )

        assert offered == [local(2024, 1, 10, 9, 0), local(2024, 1, 10, 9, 30)]

    def test_setup_time_checked_at_commit(self, guard, config, shifts, local):
        earlier = _booked(local(2024, 1, 10, 9, 0))
        buffer = ServiceBuffer(service_id="svc-1", setup_time=10)

        with pytest.raises(SlotNoLongerAvailableException) as exc_info:
            guard.ensure_slot_available(
                config,
                shifts,
                [earlier],
                _request(local(2024, 1, 10, 10, 0)),
                local(2024, 1, 9, 12, 0),
                TZ,
                service_buffer=buffer,
            )

        assert exc_info.value.details["reason"] == "already_booked"


class TestOfferingMetrics:
    def test_screening_does_not_count_booking_decisions(self, guard, config, shifts, local):
        labels = [{"action": "book", "outcome": outcome} for outcome in ("allowed", "denied")]
        before = [
            REGISTRY.get_sample_value("studiobook_policy_decisions_total", label) or 0.0
            for label in labels
        ]

        offered = _offer(guard, config, shifts, [], local(2024, 1, 10, 8, 30))

        after = [
            REGISTRY.get_sample_value("studiobook_policy_decisions_total", label) or 0.0
            for label in labels
        ]
        assert len(offered) == 4
        assert after == before

    def test_corrupt_rules_raise_even_without_candidates(self, guard, local):
        corrupt = PolicyConfiguration(max_group_size=0)

        with pytest.raises(InvalidConfigurationException):
            _offer(guard, corrupt, [], [], local(2024, 1, 9, 8, 0))
