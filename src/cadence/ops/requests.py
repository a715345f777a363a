"""
Typed request objects for operations.

Each dataclass is the *input* contract of one operation function. Raw
rules stay as plain mappings here; compiling them is the operation's job.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from cadence.rules.models import ScheduleRule
from cadence.scheduling.models import PlanStatus

RuleInput = Mapping[str, Any] | ScheduleRule

# ------------------------------------------------------------------ #
# Database
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class DatabaseInitRequest:
    """Request for :func:`cadence.ops.database.initialize_database`.

    ``seed_holidays`` loads the built-in calendar for ``settings.holiday_years``.
    """

    seed_holidays: bool = True


# ------------------------------------------------------------------ #
# Rules
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class CompileRuleRequest:
    rule: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class PreviewOccurrencesRequest:
    """Request for :func:`cadence.ops.rules.preview_occurrences`.

    ``start`` defaults to today; ``end`` defaults to ``start + days - 1``
    with ``days`` falling back to ``settings.horizon_days``.
    """

    rule: RuleInput
    start: date | None = None
    end: date | None = None
    days: int | None = None
    limit: int | None = None


@dataclass(frozen=True, slots=True)
class RegeneratePlansRequest:
    """Request for :func:`cadence.ops.rules.regenerate_plans`.

    Attributes:
        task_id: Task whose plans are reconciled.
        rule: Rule to apply; the stored rule when omitted.
        start / end: Window; defaults to the horizon from today.
        include_past: Also materialize slots earlier than now.
    """

    task_id: str
    rule: RuleInput | None = None
    start: date | None = None
    end: date | None = None
    include_past: bool = False


@dataclass(frozen=True, slots=True)
class SaveRuleRequest:
    """Request for :func:`cadence.ops.rules.save_rule`.

    Registers (or updates) the task's delivery target alongside the rule.
    """

    task_id: str
    rule: RuleInput
    name: str = ""
    destination: str = ""
    description: str = ""
    message_template: str | None = None


@dataclass(frozen=True, slots=True)
class DeleteTaskRequest:
    task_id: str
    purge_history: bool = False


# ------------------------------------------------------------------ #
# Plans
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class ListPlansRequest:
    """Request for ``list_upcoming`` / ``list_history``.

    ``task_id=None`` lists every task.
    """

    task_id: str | None = None
    start: date | None = None
    end: date | None = None
    statuses: tuple[PlanStatus, ...] = ()
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True, slots=True)
class PlanActionRequest:
    """Request for ``retry_plan`` / ``skip_plan``."""

    plan_id: str


# ------------------------------------------------------------------ #
# Holidays
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class LoadHolidaysRequest:
    start_year: int
    end_year: int | None = None


@dataclass(frozen=True, slots=True)
class HolidayRequest:
    """Request for ``add_holiday`` / ``remove_holiday``."""

    day: date
    name: str = ""


@dataclass(frozen=True, slots=True)
class ListHolidaysRequest:
    year: int
    month: int | None = None
    include_workdays: bool = True


@dataclass(frozen=True, slots=True)
class CountWorkdaysRequest:
    start: date
    end: date


@dataclass(frozen=True, slots=True)
class NextWorkdayRequest:
    after: date
    max_days: int = 30


__all__ = [
    "CompileRuleRequest",
    "CountWorkdaysRequest",
    "DatabaseInitRequest",
    "DeleteTaskRequest",
    "HolidayRequest",
    "ListHolidaysRequest",
    "ListPlansRequest",
    "LoadHolidaysRequest",
    "NextWorkdayRequest",
    "PlanActionRequest",
    "PreviewOccurrencesRequest",
    "RegeneratePlansRequest",
    "RuleInput",
    "SaveRuleRequest",
]
