from datetime import date, datetime, time, timedelta

import pytest
import pytz

from studiobook.core.exceptions import ValidationException
from studiobook.core.timezone_utils import (
    add_calendar_months,
    ensure_aware,
    get_studio_timezone,
    localize_wall_time,
    studio_date,
)

pytestmark = pytest.mark.unit


class TestGetStudioTimezone:
    def test_name(self):
        assert get_studio_timezone("Europe/London").zone == "Europe/London"

    def test_none_uses_default(self):
        assert get_studio_timezone(None).zone == "America/New_York"

    def test_tzinfo_passthrough(self):
        assert get_studio_timezone(pytz.UTC) is pytz.UTC

    def test_unknown_raises(self):
        with pytest.raises(ValidationException) as exc_info:
            get_studio_timezone("Mars/Olympus_Mons")

        assert exc_info.value.code == "INVALID_TIMEZONE"


class TestConversions:
    def test_naive_is_utc(self):
        assert ensure_aware(datetime(2024, 1, 1, 12, 0)).tzinfo is pytz.UTC

    def test_studio_date_crosses_midnight(self):
        instant = pytz.UTC.localize(datetime(2024, 1, 11, 3, 0))

        assert studio_date(instant, "America/New_York") == date(2024, 1, 10)
        assert studio_date(instant, "UTC") == date(2024, 1, 11)

    def test_wall_time_in_dst_gap_moves_forward(self):
        result = localize_wall_time(date(2024, 3, 10), time(2, 30), "America/New_York")

        assert result.hour == 3
        assert result.minute == 30
        assert result.utcoffset() == timedelta(hours=-4)


class TestAddCalendarMonths:
    @pytest.mark.parametrize(
        "start,months,expected",
        [
            (datetime(2024, 1, 31, 9), 1, datetime(2024, 2, 29, 9)),
            (datetime(2023, 1, 31, 9), 1, datetime(2023, 2, 28, 9)),
            (datetime(2024, 3, 31, 9), 1, datetime(2024, 4, 30, 9)),
            (datetime(2024, 11, 15, 9), 3, datetime(2025, 2, 15, 9)),
            (datetime(2024, 1, 10, 9), 12, datetime(2025, 1, 10, 9)),
        ],
    )
    def test_clamps_day_of_month(self, start, months, expected):
        tz = pytz.timezone("America/New_York")

        result = add_calendar_months(tz.localize(start), months, tz)

        assert result.replace(tzinfo=None) == expected
