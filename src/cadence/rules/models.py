"""Recurrence rule domain models.

A :class:`ScheduleRule` is a tagged union: its ``mode`` is exactly one of
:class:`DayMode`, :class:`WeekMode` or :class:`IntervalMode`, and
``rule_type`` is derived from it, so a rule with an inconsistent or
missing sub-mode cannot be represented once compiled.

::

    ScheduleRule
    ├── mode: DayMode       (by_day)      specific_days | last_day |
    │                                     last_workday | nth_workday | every_day
    │       WeekMode        (by_week)     weekdays + every/first..fourth/last
    │       IntervalMode    (by_interval) value + days/weeks/months + reference
    ├── months: frozenset[int]            always 1..12 populated
    ├── exclusions: Exclusions
    └── execution_times: tuple[time, ...] sorted, unique, non-empty

Rules are immutable and round-trip through ``to_dict()`` and
``RuleCompiler.compile``.

Tags:
    cadence, rules, recurrence, dataclasses, tagged-union

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from enum import Enum
from typing import Any

ALL_MONTHS: frozenset[int] = frozenset(range(1, 13))


class RuleType(str, Enum):
    BY_DAY = "by_day"
    BY_WEEK = "by_week"
    BY_INTERVAL = "by_interval"


class DayModeKind(str, Enum):
    SPECIFIC_DAYS = "specific_days"
    LAST_DAY = "last_day"
    LAST_WORKDAY = "last_workday"
    NTH_WORKDAY = "nth_workday"
    EVERY_DAY = "every_day"


class WeekOccurrence(str, Enum):
    """Which matching weekday of the month is selected."""

    EVERY = "every"
    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    FOURTH = "fourth"
    LAST = "last"

    @property
    def ordinal(self) -> int | None:
        """1-based index, -1 for LAST, None for EVERY."""
        return _OCCURRENCE_ORDINALS[self]


_OCCURRENCE_ORDINALS = {
    WeekOccurrence.EVERY: None,
    WeekOccurrence.FIRST: 1,
    WeekOccurrence.SECOND: 2,
    WeekOccurrence.THIRD: 3,
    WeekOccurrence.FOURTH: 4,
    WeekOccurrence.LAST: -1,
}


class IntervalUnit(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"


# ---------------------------------------------------------------------------
# Sub-modes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DayMode:
    """by_day selection within each month.

    ``days`` is only meaningful for SPECIFIC_DAYS, ``nth`` only for
    NTH_WORKDAY.
    """

    kind: DayModeKind
    days: frozenset[int] = frozenset()
    nth: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.kind is DayModeKind.SPECIFIC_DAYS:
            data["days"] = sorted(self.days)
        if self.kind is DayModeKind.NTH_WORKDAY:
            data["nth"] = self.nth
        return data


@dataclass(frozen=True)
class WeekMode:
    """by_week selection. Weekdays use Monday = 1 .. Sunday = 7."""

    weekdays: frozenset[int]
    occurrence: WeekOccurrence = WeekOccurrence.EVERY

    def to_dict(self) -> dict[str, Any]:
        return {"weekdays": sorted(self.weekdays), "occurrence": self.occurrence.value}


@dataclass(frozen=True)
class IntervalMode:
    """Every ``value`` units, anchored at ``reference_date``."""

    value: int
    unit: IntervalUnit
    reference_date: date

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "unit": self.unit.value,
            "reference_date": self.reference_date.isoformat(),
        }


Mode = DayMode | WeekMode | IntervalMode

_RULE_TYPES: dict[type, RuleType] = {
    DayMode: RuleType.BY_DAY,
    WeekMode: RuleType.BY_WEEK,
    IntervalMode: RuleType.BY_INTERVAL,
}


@dataclass(frozen=True)
class Exclusions:
    exclude_holidays: bool = False
    exclude_weekends: bool = False
    specific_dates: frozenset[date] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {
            "exclude_holidays": self.exclude_holidays,
            "exclude_weekends": self.exclude_weekends,
            "specific_dates": sorted(d.isoformat() for d in self.specific_dates),
        }


# ---------------------------------------------------------------------------
# ScheduleRule
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduleRule:
    """A compiled, canonical recurrence rule.

    Build instances with :meth:`RuleCompiler.compile`; the constructor
    does not validate.
    """

    mode: Mode
    execution_times: tuple[time, ...]
    months: frozenset[int] = ALL_MONTHS
    exclusions: Exclusions = field(default_factory=Exclusions)

    @property
    def rule_type(self) -> RuleType:
        return _RULE_TYPES[type(self.mode)]

    def to_dict(self) -> dict[str, Any]:
        """Canonical snake_case form, accepted back by the compiler."""
        data: dict[str, Any] = {
            "rule_type": self.rule_type.value,
            "months": sorted(self.months),
            "execution_times": [t.strftime("%H:%M:%S") if t.second else t.strftime("%H:%M")
                                for t in self.execution_times],
            "exclusions": self.exclusions.to_dict(),
        }
        mode_key = {
            RuleType.BY_DAY: "day_mode",
            RuleType.BY_WEEK: "week_mode",
            RuleType.BY_INTERVAL: "interval_mode",
        }[self.rule_type]
        data[mode_key] = self.mode.to_dict()
        return data


# ---------------------------------------------------------------------------
# Windows and calendar entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateWindow:
    """Closed civil-date window ``[start, end]``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    @classmethod
    def from_horizon(cls, start: date, days: int) -> DateWindow:
        """Window of ``days`` days beginning at ``start``."""
        return cls(start, start + timedelta(days=max(days, 1) - 1))

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def months(self) -> Iterator[tuple[int, int]]:
        """(year, month) pairs overlapping the window, in order."""
        year, month = self.start.year, self.start.month
        while (year, month) <= (self.end.year, self.end.month):
            yield year, month
            month += 1
            if month > 12:
                year, month = year + 1, 1


@dataclass(frozen=True)
class HolidayEntry:
    """Calendar annotation for one civil date.

    ``is_adjusted_workday`` marks an officially shifted workday that falls
    on a weekend.
    """

    day: date
    is_holiday: bool = True
    is_adjusted_workday: bool = False
    name: str | None = None
    source: str = "static"


@dataclass
class TaskTarget:
    """The slice of a task the scheduler needs to deliver a reminder."""

    task_id: str
    name: str
    destination: str
    description: str = ""
    message_template: str | None = None
    active: bool = True


__all__ = [
    "ALL_MONTHS",
    "DateWindow",
    "DayMode",
    "DayModeKind",
    "Exclusions",
    "HolidayEntry",
    "IntervalMode",
    "IntervalUnit",
    "Mode",
    "RuleType",
    "ScheduleRule",
    "TaskTarget",
    "WeekMode",
    "WeekOccurrence",
]
