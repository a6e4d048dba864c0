"""Unit tests for DateKey and WeekKey helpers"""
import pytest
from datetime import date, datetime, timezone

from wellness_ledger.exceptions import InvalidDateKey
from wellness_ledger.utils.date_keys import (
    add_days,
    date_key,
    day_gap,
    parse_date_key,
    week_key,
    weekday_abbrev,
)


class TestDateKey:
    """Test instant -> DateKey conversion"""

    def test_zero_padded(self):
        assert date_key(date(2024, 3, 5)) == "2024-03-05"

    def test_naive_datetime_is_local(self):
        assert date_key(datetime(2024, 1, 1, 23, 59)) == "2024-01-01"

    def test_aware_datetime_uses_zone(self):
        """Same instant falls on different days in different zones"""
        instant = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)
        assert date_key(instant, "UTC") == "2024-01-01"
        assert date_key(instant, "Asia/Tokyo") == "2024-01-02"
        assert date_key(instant, "America/New_York") == "2024-01-01"

    def test_parse_round_trip(self):
        assert parse_date_key("2024-02-29") == date(2024, 2, 29)

    @pytest.mark.parametrize("bad", ["2024-1-1", "2023-02-29", "2024/01/01", "", "20240101", None])
    def test_malformed_keys_rejected(self, bad):
        with pytest.raises(InvalidDateKey):
            parse_date_key(bad)


class TestWeekKey:
    """Test Monday-start week keys"""

    def test_monday_through_sunday_share_key(self):
        keys = {week_key(f"2024-01-0{d}") for d in range(1, 8)}
        assert keys == {"2024-01-01"}

    def test_sunday_maps_back_six_days(self):
        assert week_key("2024-01-14") == "2024-01-08"

    def test_week_spanning_year_boundary(self):
        assert week_key("2025-01-01") == "2024-12-30"

    def test_from_datetime(self):
        assert week_key(datetime(2024, 1, 10, 12, tzinfo=timezone.utc), "UTC") == "2024-01-08"

    def test_invalid_key(self):
        with pytest.raises(InvalidDateKey):
            week_key("not-a-date")


class TestDayArithmetic:
    """Test gaps, weekday labels and shifts"""

    def test_gap_positive_and_negative(self):
        assert day_gap("2024-01-02", "2024-01-01") == 1
        assert day_gap("2024-01-01", "2024-01-05") == -4
        assert day_gap("2024-03-01", "2024-02-28") == 2

    def test_weekday_abbrev(self):
        assert weekday_abbrev("2024-01-01") == "Mon"
        assert weekday_abbrev("2024-01-07") == "Sun"

    def test_add_days_crosses_month(self):
        assert add_days("2024-01-31", 1) == "2024-02-01"
        assert add_days("2024-01-01", -1) == "2023-12-31"
