"""Exclusion filter: drops generated dates the rule excludes.

A date is removed when any of these hold:

- it is listed in ``specific_dates``
- ``exclude_weekends`` and it falls on Saturday/Sunday, unless the
  calendar marks it an adjusted workday
- ``exclude_holidays`` and the calendar marks it a holiday

Excluded occurrences are dropped, never moved to a make-up date. Dates the
calendar has no data for pass the holiday check and are reported in one
warning per call.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from cadence.core.logging import get_logger
from cadence.rules.calendar import CalendarLookup, HolidayCalendar, is_weekend
from cadence.rules.models import Exclusions

logger = get_logger(__name__)


class ExclusionFilter:
    def __init__(self, calendar: HolidayCalendar):
        self.calendar = calendar

    def apply(self, dates: Iterable[date], exclusions: Exclusions) -> set[date]:
        lookup = CalendarLookup(self.calendar)
        kept: set[date] = set()
        for day in dates:
            if day in exclusions.specific_dates:
                continue
            if (
                exclusions.exclude_weekends
                and is_weekend(day)
                and not lookup.is_adjusted_workday(day)
            ):
                continue
            if exclusions.exclude_holidays and lookup.is_holiday(day):
                continue
            kept.add(day)
        lookup.report("holiday_data_unavailable", phase="exclude")
        return kept


__all__ = ["ExclusionFilter"]
