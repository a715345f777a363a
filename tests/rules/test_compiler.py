"""Tests for cadence.rules.compiler: validation and canonicalization."""

from datetime import date, time

import pytest

from cadence.core.errors import RuleValidationError
from cadence.rules.compiler import RuleCompiler, compile_rule, complexity_score, parse_date, parse_time
from cadence.rules.models import (
    ALL_MONTHS,
    DayMode,
    DayModeKind,
    IntervalMode,
    IntervalUnit,
    RuleType,
    WeekMode,
    WeekOccurrence,
)
from tests._support import by_day, by_interval, by_week


class TestCanonicalization:
    def test_duplicate_times_collapse_and_sort(self, compiler):
        rule = compiler.compile(by_day("every_day", times=["18:00", "09:00", "09:00"]))
        assert rule.execution_times == (time(9, 0), time(18, 0))

    def test_months_default_to_all(self, compiler):
        assert compiler.compile(by_day("last_day")).months == ALL_MONTHS

    def test_months_deduplicated(self, compiler):
        rule = compiler.compile(by_day("last_day", months=[3, 3, 12]))
        assert rule.months == frozenset({3, 12})

    def test_specific_days_deduplicated(self, compiler):
        rule = compiler.compile(by_day("specific_days", days=[15, 1, 15]))
        assert rule.mode == DayMode(DayModeKind.SPECIFIC_DAYS, days=frozenset({1, 15}))

    def test_week_occurrence_defaults_to_every(self, compiler):
        rule = compiler.compile({
            "rule_type": "by_week",
            "week_mode": {"weekdays": [1, 3]},
            "execution_times": ["10:30"],
        })
        assert rule.mode == WeekMode(frozenset({1, 3}), WeekOccurrence.EVERY)
        assert rule.rule_type is RuleType.BY_WEEK

    def test_camel_case_payload(self, compiler):
        rule = compiler.compile({
            "ruleType": "by_interval",
            "intervalMode": {"interval": 2, "unit": "weeks"},
            "referenceDate": "2024-01-01",
            "executionTimes": ["08:00:30"],
            "excludeHolidays": True,
            "specificDates": ["2024-01-15"],
        })
        assert rule.mode == IntervalMode(2, IntervalUnit.WEEKS, date(2024, 1, 1))
        assert rule.execution_times == (time(8, 0, 30),)
        assert rule.exclusions.exclude_holidays is True
        assert rule.exclusions.specific_dates == frozenset({date(2024, 1, 15)})

    def test_nested_exclusions_win_over_top_level(self, compiler):
        raw = by_day("every_day", exclude_weekends=False, exclusions={"exclude_weekends": True})
        assert compiler.compile(raw).exclusions.exclude_weekends is True

    def test_compiled_rule_recompiles_to_itself(self, compiler):
        rule = compiler.compile(by_week([5], "third", times=["09:00", "17:45"], months=[1, 6]))
        assert compiler.compile(rule.to_dict()) == rule
        assert compiler.compile(rule) == rule


class TestValidation:
    def test_reports_every_violation(self, compiler):
        with pytest.raises(RuleValidationError) as exc_info:
            compiler.compile({
                "rule_type": "by_day",
                "day_mode": {"type": "specific_days", "days": [0, 32]},
                "months": [13],
                "execution_times": ["25:00"],
            })
        errors = exc_info.value.errors
        assert any(e.startswith("day_mode.days[0]") for e in errors)
        assert any(e.startswith("day_mode.days[1]") for e in errors)
        assert any(e.startswith("months[0]") for e in errors)
        assert any(e.startswith("execution_times[0]") for e in errors)

    def test_malformed_sections_do_not_hide_other_violations(self, compiler):
        with pytest.raises(RuleValidationError) as exc_info:
            compiler.compile({
                "rule_type": "by_day",
                "day_mode": "last_day",
                "months": [13],
                "execution_times": [],
                "exclusions": {"exclude_weekends": "sometimes"},
            })
        errors = exc_info.value.errors
        assert any(e.startswith("day_mode: ") for e in errors)
        assert any(e.startswith("months[0]") for e in errors)
        assert any(e.startswith("execution_times: ") for e in errors)
        assert any(e.startswith("exclusions.exclude_weekends: ") for e in errors)

    def test_rule_type_required(self, compiler):
        with pytest.raises(RuleValidationError, match="rule_type: required"):
            compiler.compile({"execution_times": ["09:00"]})

    def test_unknown_rule_type(self, compiler):
        with pytest.raises(RuleValidationError, match="rule_type: 'hourly' is not one of"):
            compiler.compile({"rule_type": "hourly", "execution_times": ["09:00"]})

    def test_execution_times_required(self, compiler):
        with pytest.raises(RuleValidationError, match="execution_times"):
            compiler.compile({"rule_type": "by_day", "day_mode": {"type": "last_day"}, "execution_times": []})

    def test_mode_must_match_rule_type(self, compiler):
        raw = by_day("last_day")
        raw["week_mode"] = {"weekdays": [1]}
        with pytest.raises(RuleValidationError, match="week_mode: must be empty"):
            compiler.compile(raw)

    def test_missing_mode(self, compiler):
        with pytest.raises(RuleValidationError, match="interval_mode: required"):
            compiler.compile({"rule_type": "by_interval", "execution_times": ["09:00"]})

    def test_specific_days_need_days(self, compiler):
        with pytest.raises(RuleValidationError, match="day_mode.days: at least one value"):
            compiler.compile(by_day("specific_days", days=[]))

    @pytest.mark.parametrize("nth", [0, -1, "2", None, True])
    def test_nth_workday_requires_positive_int(self, compiler, nth):
        with pytest.raises(RuleValidationError, match="day_mode.nth"):
            compiler.compile(by_day("nth_workday", nth=nth))

    def test_weekdays_range(self, compiler):
        with pytest.raises(RuleValidationError, match=r"week_mode.weekdays\[0\]"):
            compiler.compile(by_week([0]))

    def test_bad_occurrence(self, compiler):
        with pytest.raises(RuleValidationError, match="week_mode.occurrence"):
            compiler.compile(by_week([1], occurrence="fifth"))

    def test_interval_value_and_unit(self, compiler):
        with pytest.raises(RuleValidationError) as exc_info:
            compiler.compile(by_interval(0, "years", "2024-01-01"))
        joined = " ".join(exc_info.value.errors)
        assert "interval_mode.value" in joined
        assert "interval_mode.unit" in joined

    def test_interval_reference_required(self, compiler):
        raw = {"rule_type": "by_interval", "interval_mode": {"value": 1, "unit": "days"}, "execution_times": ["09:00"]}
        with pytest.raises(RuleValidationError, match="reference_date: required"):
            compiler.compile(raw)

    def test_bad_specific_date(self, compiler):
        with pytest.raises(RuleValidationError, match=r"specific_dates\[0\]"):
            compiler.compile(by_day("every_day", specific_dates=["not-a-date"]))

    def test_non_mapping_input(self, compiler):
        with pytest.raises(RuleValidationError, match="expected a mapping"):
            compiler.compile(["by_day"])


class TestComplexity:
    def test_score(self, compiler):
        rule = compiler.compile(by_day("last_workday", times=["09:00", "18:00"], months=[1]))
        # 10 base + 20 by_day + 15 last_workday + 2 * 5 times + 10 restricted months
        assert complexity_score(rule) == 65

    def test_rule_over_limit_rejected(self):
        with pytest.raises(RuleValidationError, match="complexity score"):
            RuleCompiler(max_complexity=40).compile(by_interval(1, "months", "2024-01-31"))

    def test_module_shortcut(self):
        rule = compile_rule(by_day("last_day"), max_complexity=100)
        assert rule.rule_type is RuleType.BY_DAY


class TestParsers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("9:05", time(9, 5)), ("09:05:07", time(9, 5, 7)), (" 23:59 ", time(23, 59))],
    )
    def test_parse_time(self, raw, expected):
        assert parse_time(raw) == expected

    @pytest.mark.parametrize("raw", ["24:00", "12:60", "noon", 900, None])
    def test_parse_time_invalid(self, raw):
        assert parse_time(raw) is None

    def test_parse_date(self):
        assert parse_date("2024-02-29") == date(2024, 2, 29)
        assert parse_date("2024-02-29T10:00:00") == date(2024, 2, 29)
        assert parse_date("2023-02-29") is None
