"""Booking policy evaluation for studio appointments.

Every check is a pure function of the studio's rules, the appointment and
an explicit ``now``. Callers sample the clock once and pass the same
instant to every check that makes up one user-facing decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Iterable, Optional

from ..core.enums import PolicyViolation
from ..core.exceptions import InvalidConfigurationException
from ..core.timezone_utils import TimezoneLike, add_calendar_months, ensure_aware, studio_date
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.appointment import Appointment
from ..schemas.booking_policy import (
    FUTURE_BOOKING_LIMIT_MONTHS_RANGE,
    MAX_GROUP_SIZE_RANGE,
    PolicyConfiguration,
    PolicyConfigurationUpdate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    violations: tuple[PolicyViolation, ...] = ()
    reasons: tuple[str, ...] = field(default=())

    def __bool__(self) -> bool:
        return self.allowed

    @property
    def reason(self) -> str | None:
        return "; ".join(self.reasons) if self.reasons else None

    def to_payload(self) -> dict[str, object]:
        return {
            "allowed": self.allowed,
            "violations": [violation.value for violation in self.violations],
            "reason": self.reason,
        }

    @classmethod
    def allow(cls) -> "PolicyDecision":
        return cls(allowed=True)

    @classmethod
    def from_failures(cls, failures: list[tuple[PolicyViolation, str]]) -> "PolicyDecision":
        if not failures:
            return cls.allow()
        return cls(
            allowed=False,
            violations=tuple(violation for violation, _ in failures),
            reasons=tuple(reason for _, reason in failures),
        )


def validate_configuration(config: PolicyConfiguration) -> None:
    """
    Refuse to evaluate a corrupted rule set.

    Raises:
        InvalidConfigurationException: On the first out-of-range field
    """
    low, high = FUTURE_BOOKING_LIMIT_MONTHS_RANGE
    if not low <= config.future_booking_limit_months <= high:
        raise InvalidConfigurationException(
            "future_booking_limit_months", config.future_booking_limit_months, f"{low}-{high}"
        )

    low, high = MAX_GROUP_SIZE_RANGE
    if not low <= config.max_group_size <= high:
        raise InvalidConfigurationException("max_group_size", config.max_group_size, f"{low}-{high}")

    for name in (
        "immediate_booking_buffer_minutes",
        "cancellation_buffer_hours",
        "rescheduling_buffer_hours",
    ):
        value = getattr(config, name)
        if value < 0:
            raise InvalidConfigurationException(name, value, ">= 0")


def apply_policy_update(
    config: PolicyConfiguration, update: PolicyConfigurationUpdate
) -> PolicyConfiguration:
    """Return a new configuration with only the explicitly set fields changed."""
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    updated = config.model_copy(update=changes)
    validate_configuration(updated)
    if changes:
        logger.info(
            "Booking rules updated for studio %s: %s", config.studio_id, sorted(changes)
        )
    return updated


class BookingPolicyEngine:
    """Decides whether a client may book, cancel or reschedule under a studio's rules."""

    def future_booking_limit(
        self, config: PolicyConfiguration, now: datetime, tz: TimezoneLike = None
    ) -> datetime:
        """Latest instant a new booking may start: now plus N calendar months."""
        validate_configuration(config)
        return add_calendar_months(now, config.future_booking_limit_months, tz)

    def evaluate_booking(
        self,
        config: PolicyConfiguration,
        requested_start: datetime,
        now: datetime,
        tz: TimezoneLike = None,
        group_size: Optional[int] = None,
    ) -> PolicyDecision:
        """
        Evaluate every rule for a new booking and report all that fail.

        Args:
            config: Studio booking rules
            requested_start: Proposed appointment start
            now: Evaluation instant, sampled once by the caller
            tz: Studio timezone, used for same-day and month arithmetic
            group_size: Party size; group rules are skipped when None

        Returns:
            PolicyDecision listing each violated rule
        """
        validate_configuration(config)
        failures = self._booking_window_failures(config, requested_start, now, tz)
        if group_size is not None and config.online_booking_enabled:
            failures.extend(self._group_size_failures(config, group_size))

        decision = PolicyDecision.from_failures(failures)
        self._record("book", decision)
        return decision

    def can_book_now(
        self,
        config: PolicyConfiguration,
        requested_start: datetime,
        now: datetime,
        tz: TimezoneLike = None,
    ) -> bool:
        return self.evaluate_booking(config, requested_start, now, tz).allowed

    def filter_bookable_starts(
        self,
        config: PolicyConfiguration,
        starts: Iterable[datetime],
        now: datetime,
        tz: TimezoneLike = None,
    ) -> list[datetime]:
        """
        Keep the candidate starts a client may book at ``now``.

        Used to screen a page of slots: the configuration is validated once
        and no per-candidate decisions are recorded.
        """
        validate_configuration(config)
        starts = list(starts)
        allowed = [
            start
            for start in starts
            if not self._booking_window_failures(config, start, now, tz)
        ]
        if len(allowed) < len(starts):
            logger.debug(
                "Booking rules screened out %d of %d candidate slots",
                len(starts) - len(allowed),
                len(starts),
            )
        return allowed

    def evaluate_cancellation(
        self, config: PolicyConfiguration, appointment: Appointment, now: datetime
    ) -> PolicyDecision:
        validate_configuration(config)
        decision = self._deadline_decision(
            enabled=config.cancellation_allowed,
            buffer_hours=config.cancellation_buffer_hours,
            scheduled_start=appointment.scheduled_start,
            now=now,
            violation=PolicyViolation.PAST_CANCELLATION_DEADLINE,
            action="Cancellation",
        )
        self._record("cancel", decision)
        return decision

    def can_cancel(
        self, config: PolicyConfiguration, appointment: Appointment, now: datetime
    ) -> bool:
        return self.evaluate_cancellation(config, appointment, now).allowed

    def evaluate_reschedule(
        self, config: PolicyConfiguration, appointment: Appointment, now: datetime
    ) -> PolicyDecision:
        validate_configuration(config)
        decision = self._deadline_decision(
            enabled=config.rescheduling_allowed,
            buffer_hours=config.rescheduling_buffer_hours,
            scheduled_start=appointment.scheduled_start,
            now=now,
            violation=PolicyViolation.PAST_RESCHEDULE_DEADLINE,
            action="Rescheduling",
        )
        self._record("reschedule", decision)
        return decision

    def can_reschedule(
        self, config: PolicyConfiguration, appointment: Appointment, now: datetime
    ) -> bool:
        return self.evaluate_reschedule(config, appointment, now).allowed

    def validate_group_size(self, config: PolicyConfiguration, requested_size: int) -> PolicyDecision:
        validate_configuration(config)
        decision = PolicyDecision.from_failures(self._group_size_failures(config, requested_size))
        self._record("group_size", decision)
        return decision

    @staticmethod
    def _group_size_failures(
        config: PolicyConfiguration, requested_size: int
    ) -> list[tuple[PolicyViolation, str]]:
        if requested_size < 1:
            return [(PolicyViolation.GROUP_SIZE_EXCEEDED, "At least one attendee is required")]
        if not config.allow_group_appointments and requested_size > 1:
            return [
                (PolicyViolation.GROUP_SIZE_EXCEEDED, "Group appointments are not offered")
            ]
        if requested_size > config.max_group_size:
            return [
                (
                    PolicyViolation.GROUP_SIZE_EXCEEDED,
                    f"Groups are limited to {config.max_group_size} attendees",
                )
            ]
        return []

    @staticmethod
    def _booking_window_failures(
        config: PolicyConfiguration,
        requested_start: datetime,
        now: datetime,
        tz: TimezoneLike,
    ) -> list[tuple[PolicyViolation, str]]:
        requested_start = ensure_aware(requested_start)
        now = ensure_aware(now)

        if not config.online_booking_enabled:
            return [(PolicyViolation.ONLINE_BOOKING_DISABLED, "Online booking is disabled")]

        failures: list[tuple[PolicyViolation, str]] = []
        lead = requested_start - now

        if config.immediate_booking_allowed:
            buffer = timedelta(minutes=config.immediate_booking_buffer_minutes)
            if lead < buffer:
                failures.append(
                    (
                        PolicyViolation.OUTSIDE_IMMEDIATE_WINDOW,
                        f"Bookings must be made at least "
                        f"{config.immediate_booking_buffer_minutes} minutes in advance",
                    )
                )
        elif lead < timedelta(0) or studio_date(requested_start, tz) <= studio_date(now, tz):
            failures.append(
                (
                    PolicyViolation.OUTSIDE_IMMEDIATE_WINDOW,
                    "Same-day bookings are not accepted",
                )
            )

        horizon = add_calendar_months(now, config.future_booking_limit_months, tz)
        if requested_start > horizon:
            failures.append(
                (
                    PolicyViolation.BEYOND_FUTURE_HORIZON,
                    f"Bookings can be made at most {config.future_booking_limit_months} "
                    f"months ahead",
                )
            )
        return failures

    @staticmethod
    def _deadline_decision(
        *,
        enabled: bool,
        buffer_hours: int,
        scheduled_start: datetime,
        now: datetime,
        violation: PolicyViolation,
        action: str,
    ) -> PolicyDecision:
        if not enabled:
            return PolicyDecision.from_failures([(violation, f"{action} is not allowed")])

        lead = ensure_aware(scheduled_start) - ensure_aware(now)
        # Deadline is inclusive; a started appointment is always past it.
        if lead <= timedelta(0) or lead < timedelta(hours=buffer_hours):
            if buffer_hours:
                reason = f"{action} closes {buffer_hours} hours before the appointment"
            else:
                reason = f"{action} closes when the appointment starts"
            return PolicyDecision.from_failures([(violation, reason)])
        return PolicyDecision.allow()

    @staticmethod
    def _record(action: str, decision: PolicyDecision) -> None:
        if not decision.allowed:
            logger.debug(
                "Policy refused %s: %s",
                action,
                ", ".join(violation.value for violation in decision.violations),
            )
        prometheus_metrics.record_policy_decision(
            action, decision.allowed, (violation.value for violation in decision.violations)
        )


_engine = BookingPolicyEngine()


def can_book_now(
    config: PolicyConfiguration,
    requested_start: datetime,
    now: datetime,
    tz: TimezoneLike = None,
) -> bool:
    return _engine.can_book_now(config, requested_start, now, tz)


def can_cancel(config: PolicyConfiguration, appointment: Appointment, now: datetime) -> bool:
    return _engine.can_cancel(config, appointment, now)


def can_reschedule(config: PolicyConfiguration, appointment: Appointment, now: datetime) -> bool:
    return _engine.can_reschedule(config, appointment, now)


def validate_group_size(config: PolicyConfiguration, requested_size: int) -> PolicyDecision:
    return _engine.validate_group_size(config, requested_size)
