"""Tests for week number and week boundary arithmetic."""

from datetime import date, datetime, timedelta, timezone

import pytest

import weekmap
from weekmap import WeekStartDay, week_number_of, week_start, week_end, week_boundary


def days_of_year(year):
    d = date(year, 1, 1)
    while d.year == year:
        yield d
        d += timedelta(days=1)


class TestWeekNumberOf:
    """ISO week numbers from calendar dates."""

    def test_first_monday_of_2024_is_week_one(self):
        assert week_number_of(date(2024, 1, 1)) == 1

    def test_mid_march_2024(self):
        """Mar 4-10, 2024 is week 10."""
        assert week_number_of(date(2024, 3, 4)) == 10
        assert week_number_of(date(2024, 3, 10)) == 10
        assert week_number_of(date(2024, 3, 11)) == 11

    def test_early_january_belongs_to_previous_year_week(self):
        """Jan 1, 2021 (Friday) falls in week 53 of 2020."""
        assert week_number_of(date(2021, 1, 1)) == 53
        assert week_number_of(date(2023, 1, 1)) == 52  # Sunday

    def test_late_december_can_be_week_one(self):
        """Dec 30, 2024 (Monday) starts week 1 of 2025."""
        assert week_number_of(date(2024, 12, 30)) == 1

    def test_long_year_reports_week_53(self):
        assert week_number_of(date(2020, 12, 31)) == 53
        assert week_number_of(date(2026, 12, 31)) == 53

    def test_time_of_day_is_ignored(self):
        """Only calendar components count, not the time or offset."""
        d = date(2024, 3, 10)
        late = datetime(2024, 3, 10, 23, 59, 59)
        early_utc = datetime(2024, 3, 10, 0, 0, 1, tzinfo=timezone.utc)
        assert week_number_of(late) == week_number_of(d)
        assert week_number_of(early_utc) == week_number_of(d)

    @pytest.mark.parametrize("year", [2019, 2020, 2021, 2024, 2026, 2027])
    def test_matches_isocalendar(self, year):
        for d in days_of_year(year):
            assert week_number_of(d) == d.isocalendar()[1], d

    @pytest.mark.parametrize("year", range(2015, 2031))
    def test_range_and_monotonic_within_year(self, year):
        previous = None
        for d in days_of_year(year):
            week = week_number_of(d)
            assert 1 <= week <= 53
            if previous is not None:
                assert week >= previous or week == 1, d
            previous = week


class TestWeekStart:
    """First day of a week under Monday and Sunday conventions."""

    def test_week_10_2024_monday(self):
        assert week_start(2024, 10, WeekStartDay.MONDAY) == date(2024, 3, 4)

    def test_week_1_2024_sunday(self):
        """Jan 1, 2024 is a Monday, so Sunday weeks begin Dec 31, 2023."""
        assert week_start(2024, 1, WeekStartDay.SUNDAY) == date(2023, 12, 31)

    def test_monday_is_default(self):
        assert week_start(2024, 10) == date(2024, 3, 4)

    def test_accepts_stored_string_value(self):
        assert week_start(2024, 1, "sunday") == date(2023, 12, 31)

    def test_year_starting_on_sunday_uses_following_monday(self):
        """Jan 1, 2023 is a Sunday; ISO week 1 starts Monday Jan 2."""
        assert week_start(2023, 1, WeekStartDay.MONDAY) == date(2023, 1, 2)

    def test_year_starting_on_friday_uses_previous_monday(self):
        """Jan 1, 2027 is a Friday; week 1 starts Monday Jan 4."""
        assert week_start(2027, 1, WeekStartDay.MONDAY) == date(2027, 1, 4)

    def test_year_starting_on_thursday_uses_preceding_monday(self):
        """Jan 1, 2026 is a Thursday; week 1 starts Monday Dec 29, 2025."""
        assert week_start(2026, 1, WeekStartDay.MONDAY) == date(2025, 12, 29)

    @pytest.mark.parametrize("year", range(2000, 2041))
    def test_alignment(self, year):
        for week in range(1, 53):
            assert week_start(year, week, WeekStartDay.MONDAY).isoweekday() == 1
            assert week_start(year, week, WeekStartDay.SUNDAY).isoweekday() == 7

    @pytest.mark.parametrize("start_day", list(WeekStartDay))
    @pytest.mark.parametrize("year", [2020, 2023, 2024, 2026])
    def test_contiguous_weeks(self, year, start_day):
        for week in range(1, 52):
            end = week_end(week_start(year, week, start_day))
            assert end + timedelta(days=1) == week_start(year, week + 1, start_day)

    def test_out_of_range_week_extrapolates(self):
        """Week 0 is not rejected, it is simply the week before week 1."""
        assert week_start(2024, 0) == date(2023, 12, 25)


class TestWeekBoundary:

    def test_week_end_is_six_days_later(self):
        assert week_end(date(2024, 3, 4)) == date(2024, 3, 10)

    def test_boundary_bundles_start_and_end(self):
        boundary = week_boundary(2024, 10)
        assert boundary.year == 2024
        assert boundary.week_number == 10
        assert boundary.start_date == date(2024, 3, 4)
        assert boundary.end_date == date(2024, 3, 10)

    def test_format_date_has_no_zero_padding(self):
        assert weekmap.format_date(date(2024, 3, 4)) == "Mar 4"
        assert weekmap.format_date(date(2023, 12, 31)) == "Dec 31"
