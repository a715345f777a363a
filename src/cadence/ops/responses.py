"""
Typed response objects for operations.

Each dataclass is the *output* payload of one operation beyond the generic
:class:`~cadence.ops.result.OperationResult` envelope. ``to_dict`` gives the
JSON shape used by the CLI's ``--json`` output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any

from cadence.rules.models import HolidayEntry
from cadence.scheduling.models import ExecutionPlan, MaterializationResult

# ------------------------------------------------------------------ #
# Database
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class DatabaseInitResult:
    tables_created: list[str]
    holidays_loaded: int = 0
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables_created": self.tables_created,
            "holidays_loaded": self.holidays_loaded,
            "dry_run": self.dry_run,
        }


# ------------------------------------------------------------------ #
# Rules
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class CompiledRule:
    """Canonical form of a compiled rule."""

    rule_type: str
    complexity: int
    rule: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"rule_type": self.rule_type, "complexity": self.complexity, "rule": self.rule}


@dataclass(frozen=True, slots=True)
class OccurrenceSlot:
    """One (date, time) the rule fires at."""

    day: date
    at: time

    def to_dict(self) -> dict[str, str]:
        return {"date": self.day.isoformat(), "time": self.at.strftime("%H:%M")}


@dataclass(slots=True)
class RegenerationSummary:
    task_id: str
    window_start: date
    window_end: date
    created: int = 0
    deleted: int = 0
    retained: int = 0
    plans: list[ExecutionPlan] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: MaterializationResult, start: date, end: date) -> RegenerationSummary:
        return cls(
            task_id=result.task_id,
            window_start=start,
            window_end=end,
            created=result.created,
            deleted=result.deleted,
            retained=result.retained,
            plans=list(result.plans),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "created": self.created,
            "deleted": self.deleted,
            "retained": self.retained,
            "plans": [plan.to_dict() for plan in self.plans],
        }


@dataclass(slots=True)
class SaveRuleResult:
    task_id: str
    rule: CompiledRule
    regeneration: RegenerationSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "rule": self.rule.to_dict(),
            "regeneration": self.regeneration.to_dict() if self.regeneration else None,
        }


@dataclass(frozen=True, slots=True)
class DeleteTaskResult:
    task_id: str
    cancelled: int = 0
    purged: int = 0
    rule_deleted: bool = False
    target_deactivated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "cancelled": self.cancelled,
            "purged": self.purged,
            "rule_deleted": self.rule_deleted,
            "target_deactivated": self.target_deactivated,
        }


# ------------------------------------------------------------------ #
# Holidays
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class HolidaySummary:
    day: date
    name: str | None
    is_holiday: bool
    is_adjusted_workday: bool
    source: str

    @classmethod
    def from_entry(cls, entry: HolidayEntry) -> HolidaySummary:
        return cls(
            day=entry.day,
            name=entry.name,
            is_holiday=entry.is_holiday,
            is_adjusted_workday=entry.is_adjusted_workday,
            source=entry.source,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "name": self.name,
            "is_holiday": self.is_holiday,
            "is_adjusted_workday": self.is_adjusted_workday,
            "source": self.source,
        }


@dataclass(frozen=True, slots=True)
class HolidayLoadResult:
    start_year: int
    end_year: int
    loaded: int
    missing_years: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_year": self.start_year,
            "end_year": self.end_year,
            "loaded": self.loaded,
            "missing_years": self.missing_years,
        }


@dataclass(frozen=True, slots=True)
class WorkdayCount:
    start: date
    end: date
    workdays: int

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat(), "workdays": self.workdays}


@dataclass(frozen=True, slots=True)
class NextWorkday:
    after: date
    workday: date | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "after": self.after.isoformat(),
            "workday": self.workday.isoformat() if self.workday else None,
        }


__all__ = [
    "CompiledRule",
    "DatabaseInitResult",
    "DeleteTaskResult",
    "HolidayLoadResult",
    "HolidaySummary",
    "NextWorkday",
    "OccurrenceSlot",
    "RegenerationSummary",
    "SaveRuleResult",
    "WorkdayCount",
]
