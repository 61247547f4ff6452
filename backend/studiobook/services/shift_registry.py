# backend/studiobook/services/shift_registry.py
"""
Shift Registry for the studio staff calendar

Holds a snapshot of dated shifts loaded from the shift store and applies
staff-scheduling edits to it:
- Adding, editing and deleting one-off shifts
- Expanding regular weekly templates into dated shifts
- Supplying the explicit default template used when a staff member has none

Every write is checked for overlap with the staff member's other working
shifts on the same day. A conflict rejects the write; existing shifts are
never trimmed or split to make room.
"""

from datetime import date, timedelta
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..core.config import settings
from ..core.enums import RecurrencePattern, TemplateEnd
from ..core.exceptions import InvalidShiftException, ShiftConflictException
from ..schemas.shift import DayShift, RegularShiftTemplate, ShiftInterval
from .base import BaseService

logger = logging.getLogger(__name__)

DEFAULT_WORKING_WEEKDAYS = (0, 1, 2, 3, 4)

ShiftRow = Union[ShiftInterval, Mapping[str, Any]]


def build_shift(row: ShiftRow) -> ShiftInterval:
    """
    Validate a raw shift row.

    Raises:
        InvalidShiftException: If the row is malformed, e.g. ends before it starts
    """
    if isinstance(row, ShiftInterval):
        return row
    try:
        return ShiftInterval.model_validate(dict(row))
    except ValueError as e:
        raise InvalidShiftException(str(e), details={"shift_id": row.get("id")})


def find_conflicts(
    existing_intervals: Iterable[ShiftInterval], candidate: ShiftInterval
) -> List[ShiftInterval]:
    """
    Working shifts that overlap the candidate for the same staff member and date.

    Only working shifts on both sides can conflict, which keeps the check
    symmetric. A row never conflicts with itself (same id), so an edited
    shift can be checked against a list that still contains its old version.
    """
    if not candidate.is_working:
        return []
    return [
        shift
        for shift in existing_intervals
        if shift.id != candidate.id and shift.is_working and shift.overlaps(candidate)
    ]


def has_conflict(existing_intervals: Iterable[ShiftInterval], candidate: ShiftInterval) -> bool:
    return bool(find_conflicts(existing_intervals, candidate))


def default_weekly_template(
    staff_id: str,
    location_id: str,
    start_date: date,
    pattern: RecurrencePattern = RecurrencePattern.EVERY_WEEK,
) -> RegularShiftTemplate:
    """Monday to Friday using the configured default hours, weekends off."""
    day = DayShift(
        start_time=settings.default_shift_start,
        end_time=settings.default_shift_end,
        location_id=location_id,
    )
    return RegularShiftTemplate(
        staff_id=staff_id,
        weekly={weekday: [day] for weekday in DEFAULT_WORKING_WEEKDAYS},
        pattern=pattern,
        start_date=start_date,
    )


def materialize_template(
    template: RegularShiftTemplate, horizon_weeks: Optional[int] = None
) -> List[ShiftInterval]:
    """
    Expand a regular template into dated shifts.

    Weeks are anchored on the Monday of the start date's week and advance by
    the pattern's interval. Dates before the start date are skipped. A
    never-ending template stops after ``horizon_weeks`` weeks from the start
    date.
    """
    if template.end == TemplateEnd.SPECIFIC_DATE and template.end_date is not None:
        last_date = template.end_date
    else:
        weeks = horizon_weeks or settings.regular_shift_horizon_weeks
        last_date = template.start_date + timedelta(weeks=weeks)

    step = timedelta(weeks=template.pattern.week_interval)
    week_start = template.start_date - timedelta(days=template.start_date.weekday())
    shifts: List[ShiftInterval] = []

    while week_start <= last_date:
        for weekday in range(7):
            shift_date = week_start + timedelta(days=weekday)
            if shift_date < template.start_date or shift_date > last_date:
                continue
            for day_shift in template.shifts_for_weekday(weekday):
                shifts.append(
                    ShiftInterval(
                        staff_id=template.staff_id,
                        location_id=day_shift.location_id,
                        shift_date=shift_date,
                        start_time=day_shift.start_time,
                        end_time=day_shift.end_time,
                        is_recurring=True,
                        recurring_pattern=template.pattern,
                    )
                )
        week_start += step

    return shifts


class ShiftRegistry(BaseService):
    """
    Shift snapshot for a studio with conflict-checked edits.

    The registry is a working copy; persisting its changes back to the
    shift store is the caller's job.
    """

    def __init__(self, shifts: Optional[Iterable[ShiftRow]] = None):
        super().__init__()
        self._shifts: Dict[str, ShiftInterval] = {}
        for shift in shifts or ():
            self._insert(build_shift(shift))

    def __len__(self) -> int:
        return len(self._shifts)

    def __iter__(self):
        return iter(self.shifts_for())

    def get(self, shift_id: str) -> ShiftInterval:
        try:
            return self._shifts[shift_id]
        except KeyError:
            raise InvalidShiftException(
                f"Shift {shift_id} not found", details={"shift_id": shift_id}
            )

    def shifts_for(
        self,
        staff_id: Optional[str] = None,
        location_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[ShiftInterval]:
        """Shifts matching every given filter, ordered by date then start time."""
        matching = [
            shift
            for shift in self._shifts.values()
            if (staff_id is None or shift.staff_id == staff_id)
            and (location_id is None or shift.location_id == location_id)
            and (start_date is None or shift.shift_date >= start_date)
            and (end_date is None or shift.shift_date <= end_date)
        ]
        return sorted(matching, key=lambda s: (s.shift_date, s.start_minutes, s.staff_id))

    @BaseService.measure_operation("add_shift")
    def add_shift(self, shift: ShiftRow) -> ShiftInterval:
        """Add a one-off shift, given as a schema or a raw store row."""
        shift = build_shift(shift)
        if shift.id in self._shifts:
            raise InvalidShiftException(
                f"Shift {shift.id} already exists", details={"shift_id": shift.id}
            )
        self._insert(shift)
        self.logger.info(
            f"Added shift {shift.id} for {shift.staff_id} on {shift.shift_date} {shift.time_range}"
        )
        return shift

    @BaseService.measure_operation("update_shift")
    def update_shift(self, shift_id: str, **changes: Any) -> ShiftInterval:
        """
        Edit one dated shift.

        Changes are re-validated as a whole row; the template that produced
        the shift, if any, is unaffected.
        """
        current = self.get(shift_id)
        if "id" in changes:
            raise InvalidShiftException("Shift id cannot be changed", details={"shift_id": shift_id})
        updated = build_shift({**current.model_dump(), **changes})
        self._check_conflicts(updated, self._shifts.values())
        self._shifts[shift_id] = updated
        self.logger.info(f"Updated shift {shift_id}: {sorted(changes)}")
        return updated

    @BaseService.measure_operation("delete_shift")
    def delete_shift(self, shift_id: str) -> ShiftInterval:
        removed = self.get(shift_id)
        del self._shifts[shift_id]
        self.logger.info(f"Deleted shift {shift_id}")
        return removed

    @BaseService.measure_operation("delete_shifts_in_range")
    def delete_shifts_in_range(self, staff_id: str, start_date: date, end_date: date) -> int:
        """Delete a staff member's shifts between two dates inclusive."""
        doomed = [
            shift.id
            for shift in self.shifts_for(staff_id=staff_id, start_date=start_date, end_date=end_date)
        ]
        for shift_id in doomed:
            del self._shifts[shift_id]
        self.logger.info(
            f"Deleted {len(doomed)} shifts for {staff_id} between {start_date} and {end_date}"
        )
        return len(doomed)

    @BaseService.measure_operation("apply_template")
    def apply_template(
        self, template: RegularShiftTemplate, horizon_weeks: Optional[int] = None
    ) -> List[ShiftInterval]:
        """
        Materialize a template and add every resulting shift.

        The batch is all-or-nothing: a conflict with an existing shift or
        between two generated shifts rejects the whole template.
        """
        generated = materialize_template(template, horizon_weeks)
        accepted: List[ShiftInterval] = []
        for shift in generated:
            self._check_conflicts(shift, list(self._shifts.values()) + accepted)
            accepted.append(shift)

        for shift in accepted:
            self._shifts[shift.id] = shift

        self.logger.info(
            f"Applied regular shifts for {template.staff_id}: {len(accepted)} shifts",
            extra={"template": template.summary()},
        )
        return accepted

    def _insert(self, shift: ShiftInterval) -> None:
        self._check_conflicts(shift, self._shifts.values())
        self._shifts[shift.id] = shift

    def _check_conflicts(self, shift: ShiftInterval, existing: Iterable[ShiftInterval]) -> None:
        conflicts = find_conflicts(existing, shift)
        if conflicts:
            first = conflicts[0]
            self.logger.warning(
                f"Found {len(conflicts)} shift conflicts for {shift.staff_id} "
                f"on {shift.shift_date} at {shift.time_range}"
            )
            raise ShiftConflictException(
                staff_id=shift.staff_id,
                shift_date=shift.shift_date.isoformat(),
                new_range=shift.time_range,
                conflicting_range=first.time_range,
            )
