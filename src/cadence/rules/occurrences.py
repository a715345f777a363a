"""
Occurrence generator: compiled rule + window → civil dates.

Manifesto:
    Month-bound rules (nth workday, third Friday, last workday) only make
    sense over a whole month, and interval rules only make sense from
    their true origin. Generating from the window edges instead would make
    the answer depend on where the window happens to start, so
    regenerating over a shifted horizon would move occurrences around.

    - Month-bound rules resolve over the full month, then clip to the window.
    - Interval rules step from ``reference_date`` (k = 0, 1, ...), never
      from the window start; month steps clamp to the month's last day.
    - Interval rules ignore ``months``.

Architecture:
    ::

        generate(rule, window)
            │
            ├── DayMode      per (year, month) in window ∩ rule.months
            │                  specific_days / every_day / last_day
            │                  last_workday  (walk back from month end)
            │                  nth_workday   (walk forward from day 1)
            ├── WeekMode     per month: weekday groups → ordinal pick
            └── IntervalMode origin + k·value (relativedelta for months)
            │
            ▼
        set[date] ∩ window        (no time-of-day; see materializer)

Examples:
    >>> gen = OccurrenceGenerator(HolidayCalendar())
    >>> rule = RuleCompiler().compile({
    ...     "rule_type": "by_interval",
    ...     "interval_mode": {"value": 1, "unit": "months", "reference_date": "2024-01-31"},
    ...     "execution_times": ["09:00"],
    ... })
    >>> sorted(gen.generate(rule, DateWindow(date(2024, 1, 1), date(2024, 3, 31))))
    [datetime.date(2024, 1, 31), datetime.date(2024, 2, 29), datetime.date(2024, 3, 31)]

Tags:
    cadence, rules, recurrence, occurrences, workdays, dateutil

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from cadence.core.errors import OccurrenceComputationError
from cadence.core.logging import get_logger
from cadence.rules.calendar import CalendarLookup, HolidayCalendar, last_day_of_month
from cadence.rules.exclusions import ExclusionFilter
from cadence.rules.models import (
    DateWindow,
    DayMode,
    DayModeKind,
    IntervalMode,
    IntervalUnit,
    ScheduleRule,
    WeekMode,
    WeekOccurrence,
)

logger = get_logger(__name__)


class OccurrenceGenerator:
    """Expands compiled rules into the set of dates they fire on."""

    def __init__(self, calendar: HolidayCalendar):
        self.calendar = calendar

    def generate(self, rule: ScheduleRule, window: DateWindow) -> set[date]:
        if not isinstance(rule, ScheduleRule):
            raise OccurrenceComputationError(
                f"Expected a compiled ScheduleRule, got {type(rule).__name__}"
            )
        if not isinstance(window, DateWindow):
            raise OccurrenceComputationError(
                f"Expected a DateWindow, got {type(window).__name__}"
            )

        lookup = CalendarLookup(self.calendar)
        mode = rule.mode
        if isinstance(mode, DayMode):
            dates = self._by_day(mode, rule.months, window, lookup)
        elif isinstance(mode, WeekMode):
            dates = self._by_week(mode, rule.months, window)
        elif isinstance(mode, IntervalMode):
            dates = self._by_interval(mode, window)
        else:
            raise OccurrenceComputationError(f"Unknown rule mode: {type(mode).__name__}")

        lookup.report(
            "holiday_data_unavailable",
            phase="generate",
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
        )
        return {d for d in dates if d in window}

    # -- by_day --------------------------------------------------------------

    def _by_day(
        self,
        mode: DayMode,
        months: frozenset[int],
        window: DateWindow,
        lookup: CalendarLookup,
    ) -> set[date]:
        dates: set[date] = set()
        for year, month in window.months():
            if month not in months:
                continue
            last = last_day_of_month(year, month)

            if mode.kind is DayModeKind.SPECIFIC_DAYS:
                if not mode.days:
                    raise OccurrenceComputationError("specific_days rule without days")
                dates.update(date(year, month, d) for d in mode.days if d <= last.day)

            elif mode.kind is DayModeKind.EVERY_DAY:
                dates.update(date(year, month, d) for d in range(1, last.day + 1))

            elif mode.kind is DayModeKind.LAST_DAY:
                dates.add(last)

            elif mode.kind is DayModeKind.LAST_WORKDAY:
                day = last
                while day.month == month and not lookup.is_workday(day):
                    day -= timedelta(days=1)
                if day.month == month:
                    dates.add(day)

            elif mode.kind is DayModeKind.NTH_WORKDAY:
                if not mode.nth or mode.nth < 1:
                    raise OccurrenceComputationError(f"nth_workday rule with nth={mode.nth!r}")
                found = self._nth_workday(year, month, mode.nth, lookup)
                if found is not None:
                    dates.add(found)

            else:
                raise OccurrenceComputationError(f"Unknown day mode: {mode.kind!r}")
        return dates

    @staticmethod
    def _nth_workday(year: int, month: int, nth: int, lookup: CalendarLookup) -> date | None:
        seen = 0
        day = date(year, month, 1)
        while day.month == month:
            if lookup.is_workday(day):
                seen += 1
                if seen == nth:
                    return day
            day += timedelta(days=1)
        return None

    # -- by_week -------------------------------------------------------------

    def _by_week(self, mode: WeekMode, months: frozenset[int], window: DateWindow) -> set[date]:
        if not mode.weekdays:
            raise OccurrenceComputationError("by_week rule without weekdays")
        ordinal = mode.occurrence.ordinal
        dates: set[date] = set()
        for year, month in window.months():
            if month not in months:
                continue
            by_weekday: dict[int, list[date]] = defaultdict(list)
            day = date(year, month, 1)
            while day.month == month:
                if day.isoweekday() in mode.weekdays:
                    by_weekday[day.isoweekday()].append(day)
                day += timedelta(days=1)

            for matches in by_weekday.values():
                if mode.occurrence is WeekOccurrence.EVERY:
                    dates.update(matches)
                elif ordinal == -1:
                    dates.add(matches[-1])
                elif ordinal <= len(matches):
                    dates.add(matches[ordinal - 1])
        return dates

    # -- by_interval -----------------------------------------------------------

    def _by_interval(self, mode: IntervalMode, window: DateWindow) -> set[date]:
        if mode.value < 1:
            raise OccurrenceComputationError(f"interval value {mode.value} < 1")
        origin = mode.reference_date
        dates: set[date] = set()
        if window.end < origin:
            return dates

        if mode.unit is IntervalUnit.MONTHS:
            elapsed = (window.start.year - origin.year) * 12 + window.start.month - origin.month
            k = max(0, elapsed // mode.value - 1)
            while True:
                occurrence = origin + relativedelta(months=k * mode.value)
                if occurrence > window.end:
                    break
                if occurrence >= window.start:
                    dates.add(occurrence)
                k += 1
            return dates

        step_days = mode.value * (7 if mode.unit is IntervalUnit.WEEKS else 1)
        elapsed_days = (window.start - origin).days
        k = max(0, -(-elapsed_days // step_days))
        occurrence = origin + timedelta(days=k * step_days)
        while occurrence <= window.end:
            dates.add(occurrence)
            occurrence += timedelta(days=step_days)
        return dates


def resolve_occurrences(
    rule: ScheduleRule, window: DateWindow, calendar: HolidayCalendar
) -> list[date]:
    """Generate then filter: the sorted dates a rule actually fires on in ``window``."""
    dates = OccurrenceGenerator(calendar).generate(rule, window)
    return sorted(ExclusionFilter(calendar).apply(dates, rule.exclusions))


__all__ = ["OccurrenceGenerator", "resolve_occurrences"]
