"""Recurrence rules: compilation, occurrence generation, exclusions, calendar."""

from .calendar import CalendarLookup, HolidayCalendar, StaticHolidaySource
from .compiler import RuleCompiler, compile_rule, complexity_score
from .exclusions import ExclusionFilter
from .models import (
    DateWindow,
    DayMode,
    DayModeKind,
    Exclusions,
    HolidayEntry,
    IntervalMode,
    IntervalUnit,
    RuleType,
    ScheduleRule,
    TaskTarget,
    WeekMode,
    WeekOccurrence,
)
from .occurrences import OccurrenceGenerator, resolve_occurrences

__all__ = [
    "CalendarLookup",
    "DateWindow",
    "DayMode",
    "DayModeKind",
    "ExclusionFilter",
    "Exclusions",
    "HolidayCalendar",
    "HolidayEntry",
    "IntervalMode",
    "IntervalUnit",
    "OccurrenceGenerator",
    "RuleCompiler",
    "RuleType",
    "ScheduleRule",
    "StaticHolidaySource",
    "TaskTarget",
    "WeekMode",
    "WeekOccurrence",
    "compile_rule",
    "complexity_score",
    "resolve_occurrences",
]
