from datetime import date, datetime, time
from typing import Callable

import pytest
import pytz

from studiobook.schemas.booking_policy import PolicyConfiguration
from studiobook.schemas.shift import ShiftInterval

STUDIO_TZ_NAME = "America/New_York"


@pytest.fixture
def studio_tz():
    return pytz.timezone(STUDIO_TZ_NAME)


@pytest.fixture
def local(studio_tz) -> Callable[..., datetime]:
    """Build an aware studio-local datetime: local(2024, 1, 10, 10, 0)."""

    def _local(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
        return studio_tz.localize(datetime(year, month, day, hour, minute))

    return _local


@pytest.fixture
def utc() -> Callable[..., datetime]:
    def _utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
        return pytz.UTC.localize(datetime(year, month, day, hour, minute))

    return _utc


@pytest.fixture
def default_config() -> PolicyConfiguration:
    return PolicyConfiguration(studio_id="studio-1")


@pytest.fixture
def make_shift() -> Callable[..., ShiftInterval]:
    def _make_shift(
        start: str,
        end: str,
        *,
        shift_date: date = date(2024, 1, 10),
        staff_id: str = "staff-1",
        location_id: str = "loc-1",
        **extra,
    ) -> ShiftInterval:
        return ShiftInterval(
            staff_id=staff_id,
            location_id=location_id,
            shift_date=shift_date,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
            **extra,
        )

    return _make_shift
