"""
Holiday calendar: civil date → holiday / adjusted-workday annotations.

Manifesto:
    Workday arithmetic ("last workday of the month", "3rd workday") and
    holiday exclusion both hinge on one question: is this date a day people
    work? In the CN statutory calendar the answer is not "Monday to Friday":
    holidays fall on weekdays and some weekends are official workdays.

    - **Explicit coverage:** the calendar knows which years it has data
      for; outside them it says so instead of guessing.
    - **Degraded, not broken:** callers that cannot get an answer treat the
      date as a regular day and log a warning once per pass.
    - **Custom entries:** operators can add and remove ad-hoc holidays.

Architecture:
    ::

        HolidaySource.load(y0, y1) ──► [HolidayEntry]
              │                                │
              │ StaticHolidaySource            ▼
              │ SqlHolidayCalendar     HolidayCalendar
              │                          ├── is_holiday(day, strict)
              │                          ├── is_adjusted_workday(day)
              │                          ├── is_workday(day)
              │                          ├── next_workday / count_workdays
              │                          └── month_holidays(year, month)
              │                                │
              │                                ▼
              │                        CalendarLookup (one per pass)
              │                          records unknown dates,
              │                          report() logs one warning

    Workday: not a holiday, and either a weekday or an adjusted workday.

Tags:
    cadence, calendar, holidays, workdays, cn-statutory

Doc-Types:
    api-reference
"""

from __future__ import annotations

import calendar as _stdcal
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any

from cadence.core.errors import ExclusionDataUnavailable
from cadence.core.logging import get_logger
from cadence.rules.models import HolidayEntry

logger = get_logger(__name__)


def _span(name: str, first: str, last: str | None = None) -> list[tuple[str, str]]:
    start = date.fromisoformat(first)
    end = date.fromisoformat(last or first)
    out = []
    while start <= end:
        out.append((start.isoformat(), name))
        start += timedelta(days=1)
    return out


# CN statutory holidays (国务院办公厅 notices) and the weekend days shifted to workdays.
_STATIC_HOLIDAYS: dict[int, list[tuple[str, str]]] = {
    2024: [
        *_span("元旦", "2024-01-01"),
        *_span("春节", "2024-02-10", "2024-02-17"),
        *_span("清明节", "2024-04-04", "2024-04-06"),
        *_span("劳动节", "2024-05-01", "2024-05-05"),
        *_span("端午节", "2024-06-08", "2024-06-10"),
        *_span("中秋节", "2024-09-15", "2024-09-17"),
        *_span("国庆节", "2024-10-01", "2024-10-07"),
    ],
    2025: [
        *_span("元旦", "2025-01-01"),
        *_span("春节", "2025-01-28", "2025-02-04"),
        *_span("清明节", "2025-04-04", "2025-04-06"),
        *_span("劳动节", "2025-05-01", "2025-05-05"),
        *_span("端午节", "2025-05-31", "2025-06-02"),
        *_span("国庆节、中秋节", "2025-10-01", "2025-10-08"),
    ],
}

_STATIC_ADJUSTED_WORKDAYS: dict[int, list[str]] = {
    2024: [
        "2024-02-04", "2024-02-18", "2024-04-07", "2024-04-28",
        "2024-05-11", "2024-09-14", "2024-09-29", "2024-10-12",
    ],
    2025: ["2025-01-26", "2025-02-08", "2025-04-27", "2025-09-28", "2025-10-11"],
}


def is_weekend(day: date) -> bool:
    return day.isoweekday() >= 6


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, _stdcal.monthrange(year, month)[1])


class StaticHolidaySource:
    """Built-in CN statutory calendar for the years it ships data for."""

    source_name = "static"

    @property
    def years(self) -> list[int]:
        return sorted(_STATIC_HOLIDAYS)

    def load(self, start_year: int, end_year: int) -> list[HolidayEntry]:
        entries: list[HolidayEntry] = []
        for year in range(start_year, end_year + 1):
            if year not in _STATIC_HOLIDAYS:
                logger.warning("static_holidays_missing", year=year)
                continue
            entries.extend(
                HolidayEntry(day=date.fromisoformat(day), name=name, source=self.source_name)
                for day, name in _STATIC_HOLIDAYS[year]
            )
            entries.extend(
                HolidayEntry(
                    day=date.fromisoformat(day),
                    is_holiday=False,
                    is_adjusted_workday=True,
                    name="调休上班",
                    source=self.source_name,
                )
                for day in _STATIC_ADJUSTED_WORKDAYS.get(year, [])
            )
        return entries


class HolidayCalendar:
    """In-memory calendar built from holiday entries.

    Args:
        entries: Holiday and adjusted-workday annotations.
        years: Years the entries fully describe. Dates in other years are
            "unknown" unless an entry exists for them. Defaults to the
            years present in ``entries``.
    """

    def __init__(self, entries: Iterable[HolidayEntry] = (), years: Iterable[int] | None = None):
        self._entries: dict[date, HolidayEntry] = {}
        entries = list(entries)
        for entry in entries:
            self._entries[entry.day] = entry
        if years is None:
            years = {entry.day.year for entry in entries if entry.source != "custom"}
        self._years: set[int] = set(years)

    @classmethod
    def from_source(cls, source: Any, start_year: int, end_year: int) -> HolidayCalendar:
        """Load ``[start_year, end_year]`` from a ``HolidaySource``."""
        entries = source.load(start_year, end_year)
        covered = getattr(source, "years", None)
        years = [y for y in range(start_year, end_year + 1) if covered is None or y in covered]
        calendar = cls(entries, years=years)
        logger.info(
            "holiday_calendar_loaded",
            start_year=start_year,
            end_year=end_year,
            entries=len(entries),
        )
        return calendar

    # -- coverage ------------------------------------------------------------

    @property
    def years(self) -> frozenset[int]:
        return frozenset(self._years)

    def covers(self, day: date) -> bool:
        return day.year in self._years or day in self._entries

    def entry(self, day: date) -> HolidayEntry | None:
        return self._entries.get(day)

    def entries(self) -> list[HolidayEntry]:
        return [self._entries[day] for day in sorted(self._entries)]

    # -- lookups -------------------------------------------------------------

    def is_holiday(self, day: date, *, strict: bool = False) -> bool:
        """True when ``day`` is a holiday.

        Raises:
            ExclusionDataUnavailable: ``strict`` and the calendar has no
                data for ``day``. Non-strict lookups return False instead.
        """
        entry = self._entries.get(day)
        if entry is not None:
            return entry.is_holiday
        if strict and day.year not in self._years:
            raise ExclusionDataUnavailable(
                f"No holiday data for {day.isoformat()}", dates=[day]
            )
        return False

    def is_adjusted_workday(self, day: date) -> bool:
        entry = self._entries.get(day)
        return entry is not None and entry.is_adjusted_workday

    def is_workday(self, day: date, *, strict: bool = False) -> bool:
        if self.is_holiday(day, strict=strict):
            return False
        return not is_weekend(day) or self.is_adjusted_workday(day)

    def next_workday(self, after: date, max_days: int = 30) -> date | None:
        """First workday strictly after ``after``, searching ``max_days`` ahead."""
        day = after
        for _ in range(max_days):
            day += timedelta(days=1)
            if self.is_workday(day):
                return day
        return None

    def count_workdays(self, start: date, end: date) -> int:
        """Workdays in the closed range ``[start, end]``."""
        if start > end:
            raise ValueError(f"start {start} is after end {end}")
        count = 0
        day = start
        while day <= end:
            if self.is_workday(day):
                count += 1
            day += timedelta(days=1)
        return count

    def month_holidays(self, year: int, month: int) -> list[HolidayEntry]:
        last = last_day_of_month(year, month)
        return [
            entry
            for day, entry in sorted(self._entries.items())
            if date(year, month, 1) <= day <= last and entry.is_holiday
        ]

    # -- custom entries ----------------------------------------------------

    def add(self, entry: HolidayEntry) -> None:
        self._entries[entry.day] = entry

    def remove(self, day: date) -> bool:
        return self._entries.pop(day, None) is not None


class CalendarLookup:
    """Calendar view for one generation or filtering pass.

    Lookups never fail: dates without data count as regular days and are
    recorded so that :meth:`report` can emit a single warning.
    """

    def __init__(self, calendar: HolidayCalendar):
        self.calendar = calendar
        self.unknown: set[date] = set()

    def is_holiday(self, day: date) -> bool:
        try:
            return self.calendar.is_holiday(day, strict=True)
        except ExclusionDataUnavailable:
            self.unknown.add(day)
            return False

    def is_adjusted_workday(self, day: date) -> bool:
        return self.calendar.is_adjusted_workday(day)

    def is_workday(self, day: date) -> bool:
        if self.is_holiday(day):
            return False
        return not is_weekend(day) or self.is_adjusted_workday(day)

    def report(self, event: str, **fields: Any) -> None:
        if not self.unknown:
            return
        logger.warning(
            event,
            unknown_dates=len(self.unknown),
            first_unknown=min(self.unknown).isoformat(),
            last_unknown=max(self.unknown).isoformat(),
            **fields,
        )


__all__ = [
    "CalendarLookup",
    "HolidayCalendar",
    "StaticHolidaySource",
    "is_weekend",
    "last_day_of_month",
]
