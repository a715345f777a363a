"""Tests for cadence.rules.occurrences: rule expansion over date windows."""

from datetime import date

import pytest

from cadence.core.errors import OccurrenceComputationError
from cadence.rules.calendar import HolidayCalendar
from cadence.rules.models import DateWindow, HolidayEntry
from cadence.rules.occurrences import OccurrenceGenerator, resolve_occurrences
from tests._support import by_day, by_interval, by_week


def window(start: str, end: str) -> DateWindow:
    return DateWindow(date.fromisoformat(start), date.fromisoformat(end))


@pytest.fixture()
def expand(compiler, calendar):
    generator = OccurrenceGenerator(calendar)

    def _expand(raw, start, end):
        return sorted(generator.generate(compiler.compile(raw), window(start, end)))

    return _expand


class TestByDay:
    def test_specific_days_skip_short_months(self, expand):
        assert expand(by_day("specific_days", days=[31]), "2024-02-01", "2024-04-30") == [
            date(2024, 3, 31)
        ]

    def test_every_day(self, expand):
        assert len(expand(by_day("every_day"), "2024-02-01", "2024-02-29")) == 29

    def test_last_day_leap_february(self, expand):
        assert expand(by_day("last_day"), "2024-02-01", "2024-02-29") == [date(2024, 2, 29)]

    def test_months_restrict_output(self, expand):
        assert expand(by_day("last_day", months=[3]), "2024-01-01", "2024-04-30") == [
            date(2024, 3, 31)
        ]

    def test_last_workday_before_spring_festival(self, expand):
        assert expand(by_day("last_workday"), "2025-01-01", "2025-01-31") == [date(2025, 1, 27)]

    def test_last_workday_plain_month(self, expand):
        assert expand(by_day("last_workday"), "2024-09-01", "2024-09-30") == [date(2024, 9, 30)]

    def test_nth_workday_after_golden_week(self, expand):
        assert expand(by_day("nth_workday", nth=1), "2024-10-01", "2024-10-31") == [date(2024, 10, 8)]

    def test_nth_workday_lands_on_adjusted_saturday(self, expand):
        # Feb 2025: 5, 6, 7 are the first workdays, then the adjusted Saturday the 8th
        assert expand(by_day("nth_workday", nth=4), "2025-02-01", "2025-02-28") == [date(2025, 2, 8)]

    def test_nth_workday_beyond_month_yields_nothing(self, expand):
        assert expand(by_day("nth_workday", nth=25), "2024-10-01", "2024-10-31") == []

    def test_nth_workday_first_monday_holiday(self, compiler):
        cal = HolidayCalendar([HolidayEntry(day=date(2024, 6, 3), name="closure")], years={2024})
        rule = compiler.compile(by_day("nth_workday", nth=1))
        dates = OccurrenceGenerator(cal).generate(rule, window("2024-06-01", "2024-06-30"))
        assert dates == {date(2024, 6, 4)}

    def test_month_bound_rules_ignore_window_start(self, expand):
        # third workday of Sep 2024 is Wed the 4th, whatever the window's first day
        rule = by_day("nth_workday", nth=3)
        assert expand(rule, "2024-09-01", "2024-09-30") == [date(2024, 9, 4)]
        assert expand(rule, "2024-09-04", "2024-09-30") == [date(2024, 9, 4)]
        assert expand(rule, "2024-09-05", "2024-09-30") == []

    def test_unknown_year_treats_days_as_regular(self, expand):
        assert expand(by_day("last_workday"), "2026-01-01", "2026-01-31") == [date(2026, 1, 30)]


class TestByWeek:
    def test_third_friday(self, expand):
        assert expand(by_week([5], "third"), "2024-08-01", "2024-08-31") == [date(2024, 8, 16)]

    def test_last_friday_five_friday_month(self, expand):
        assert expand(by_week([5], "last"), "2024-08-01", "2024-08-31") == [date(2024, 8, 30)]

    def test_occurrence_applies_per_weekday(self, expand):
        assert expand(by_week([1, 5], "first"), "2024-09-01", "2024-09-30") == [
            date(2024, 9, 2),
            date(2024, 9, 6),
        ]

    def test_every_monday(self, expand):
        assert expand(by_week([1]), "2024-09-01", "2024-09-30") == [
            date(2024, 9, d) for d in (2, 9, 16, 23, 30)
        ]

    def test_ordinal_clipped_to_window(self, expand):
        assert expand(by_week([5], "third"), "2024-09-21", "2024-10-31") == [date(2024, 10, 18)]


class TestByInterval:
    def test_month_steps_clamp_to_month_end(self, expand):
        assert expand(by_interval(1, "months", "2024-01-31"), "2024-01-01", "2024-04-30") == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_month_steps_from_origin_not_window(self, expand):
        assert expand(by_interval(1, "months", "2024-01-31"), "2024-06-01", "2024-07-31") == [
            date(2024, 6, 30),
            date(2024, 7, 31),
        ]

    def test_day_steps_anchor_at_reference(self, expand):
        assert expand(by_interval(3, "days", "2024-01-01"), "2024-01-05", "2024-01-12") == [
            date(2024, 1, 7),
            date(2024, 1, 10),
        ]

    def test_fortnightly(self, expand):
        assert expand(by_interval(2, "weeks", "2024-01-01"), "2024-01-01", "2024-01-31") == [
            date(2024, 1, 1),
            date(2024, 1, 15),
            date(2024, 1, 29),
        ]

    def test_reference_after_window(self, expand):
        assert expand(by_interval(1, "days", "2024-03-01"), "2024-01-01", "2024-02-29") == []

    def test_window_before_reference_starts_at_reference(self, expand):
        assert expand(by_interval(10, "days", "2024-01-20"), "2024-01-01", "2024-02-10") == [
            date(2024, 1, 20),
            date(2024, 1, 30),
            date(2024, 2, 9),
        ]

    def test_months_field_ignored(self, expand):
        raw = by_interval(1, "months", "2024-01-15", months=[1])
        assert len(expand(raw, "2024-01-01", "2024-03-31")) == 3


class TestGeneratorGuards:
    def test_rejects_raw_rule(self, calendar):
        with pytest.raises(OccurrenceComputationError, match="compiled ScheduleRule"):
            OccurrenceGenerator(calendar).generate(by_day("last_day"), window("2024-01-01", "2024-01-31"))

    def test_rejects_bad_window(self, calendar, compiler):
        rule = compiler.compile(by_day("last_day"))
        with pytest.raises(OccurrenceComputationError, match="DateWindow"):
            OccurrenceGenerator(calendar).generate(rule, (date(2024, 1, 1), date(2024, 1, 31)))


class TestResolveOccurrences:
    def test_sorted_and_inside_window(self, compiler, calendar):
        rule = compiler.compile(by_week([1, 3, 5], exclude_holidays=True))
        w = window("2024-09-10", "2024-10-20")
        dates = resolve_occurrences(rule, w, calendar)
        assert dates == sorted(dates)
        assert all(d in w for d in dates)
        assert date(2024, 9, 16) not in dates
        assert date(2024, 10, 2) not in dates

    def test_excluded_dates_are_dropped_not_moved(self, compiler, calendar):
        rule = compiler.compile(by_day("specific_days", days=[1], months=[10], exclude_holidays=True))
        assert resolve_occurrences(rule, window("2024-10-01", "2024-10-31"), calendar) == []

    def test_regeneration_is_deterministic(self, compiler, calendar):
        rule = compiler.compile(by_day("last_workday", exclude_weekends=True))
        w = window("2024-01-01", "2025-12-31")
        assert resolve_occurrences(rule, w, calendar) == resolve_occurrences(rule, w, calendar)
