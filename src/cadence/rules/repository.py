"""
Persistence for rules, task targets and holidays.

Architecture:
    ::

        BaseRepository (conn + dialect)
        ├── RuleRepository          cadence_schedule_rules
        │   ├── save(task_id, rule)      upsert canonical JSON
        │   ├── get(task_id)             → ScheduleRule | None
        │   ├── delete(task_id)          → bool
        │   └── list_task_ids()
        ├── TaskTargetRepository    cadence_task_targets   (TaskDirectory)
        │   ├── upsert(target)
        │   ├── get_target(task_id)      → TaskTarget | None
        │   ├── deactivate(task_id)      → bool
        │   └── list_targets(active_only)
        └── SqlHolidayCalendar      cadence_holidays       (HolidaySource)
            ├── load(y0, y1)             → [HolidayEntry]
            ├── save_entries(entries)    upsert
            ├── add_custom / remove
            ├── years                    years with non-custom data
            └── build_calendar(y0, y1)   → HolidayCalendar

Stored rules are re-compiled on read, so a row edited by hand cannot
smuggle an invalid rule into the generator.

Tags:
    cadence, repository, persistence, rules, holidays
"""

from __future__ import annotations

import json
from datetime import date

from cadence.core.dialect import Dialect
from cadence.core.logging import get_logger
from cadence.core.protocols import Connection
from cadence.core.repository import BaseRepository
from cadence.core.timestamps import utc_now
from cadence.rules.calendar import HolidayCalendar
from cadence.rules.compiler import RuleCompiler
from cadence.rules.models import HolidayEntry, ScheduleRule, TaskTarget

logger = get_logger(__name__)


class RuleRepository(BaseRepository):
    """Compiled rules keyed by task id."""

    TABLE = "cadence_schedule_rules"

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        compiler: RuleCompiler | None = None,
    ) -> None:
        super().__init__(conn, dialect)
        self.compiler = compiler or RuleCompiler()

    def save(self, task_id: str, rule: ScheduleRule) -> None:
        now = utc_now().isoformat()
        existing = self.query_one(
            f"SELECT created_at FROM {self.TABLE} WHERE task_id = {self.ph(1)}", (task_id,)
        )
        sql = self.dialect.upsert(
            self.TABLE,
            ["task_id", "rule_type", "rule_json", "created_at", "updated_at"],
            ["task_id"],
        )
        self.execute(
            sql,
            (
                task_id,
                rule.rule_type.value,
                json.dumps(rule.to_dict(), ensure_ascii=False),
                existing["created_at"] if existing else now,
                now,
            ),
        )
        self.commit()
        logger.debug("rule_saved", task_id=task_id, rule_type=rule.rule_type.value)

    def get(self, task_id: str) -> ScheduleRule | None:
        row = self.query_one(
            f"SELECT rule_json FROM {self.TABLE} WHERE task_id = {self.ph(1)}", (task_id,)
        )
        if row is None:
            return None
        return self.compiler.compile(json.loads(row["rule_json"]))

    def delete(self, task_id: str) -> bool:
        deleted = self.rowcount(
            f"DELETE FROM {self.TABLE} WHERE task_id = {self.ph(1)}", (task_id,)
        )
        self.commit()
        return deleted > 0

    def list_task_ids(self) -> list[str]:
        rows = self.query(f"SELECT task_id FROM {self.TABLE} ORDER BY task_id")
        return [row["task_id"] for row in rows]


class TaskTargetRepository(BaseRepository):
    """SQL-backed :class:`~cadence.core.protocols.TaskDirectory`."""

    TABLE = "cadence_task_targets"
    COLUMNS = [
        "task_id", "name", "description", "destination",
        "message_template", "active", "created_at", "updated_at",
    ]

    def upsert(self, target: TaskTarget) -> None:
        now = utc_now().isoformat()
        existing = self.query_one(
            f"SELECT created_at FROM {self.TABLE} WHERE task_id = {self.ph(1)}",
            (target.task_id,),
        )
        self.execute(
            self.dialect.upsert(self.TABLE, self.COLUMNS, ["task_id"]),
            (
                target.task_id,
                target.name,
                target.description,
                target.destination,
                target.message_template,
                1 if target.active else 0,
                existing["created_at"] if existing else now,
                now,
            ),
        )
        self.commit()

    def get_target(self, task_id: str) -> TaskTarget | None:
        row = self.query_one(
            f"SELECT * FROM {self.TABLE} WHERE task_id = {self.ph(1)}", (task_id,)
        )
        return self._row_to_target(row) if row else None

    def deactivate(self, task_id: str) -> bool:
        changed = self.rowcount(
            f"UPDATE {self.TABLE} SET active = 0, updated_at = {self.ph(1)} "
            f"WHERE task_id = {self.ph(1)}",
            (utc_now().isoformat(), task_id),
        )
        self.commit()
        return changed > 0

    def list_targets(self, active_only: bool = True) -> list[TaskTarget]:
        sql = f"SELECT * FROM {self.TABLE}"
        if active_only:
            sql += " WHERE active = 1"
        sql += " ORDER BY task_id"
        return [self._row_to_target(row) for row in self.query(sql)]

    @staticmethod
    def _row_to_target(row: dict) -> TaskTarget:
        return TaskTarget(
            task_id=row["task_id"],
            name=row["name"],
            destination=row["destination"],
            description=row.get("description") or "",
            message_template=row.get("message_template"),
            active=bool(row["active"]),
        )


class SqlHolidayCalendar(BaseRepository):
    """Holiday persistence; also a :class:`~cadence.core.protocols.HolidaySource`."""

    TABLE = "cadence_holidays"
    COLUMNS = ["holiday_date", "year", "is_holiday", "is_adjusted_workday", "name", "source"]

    def load(self, start_year: int, end_year: int) -> list[HolidayEntry]:
        rows = self.query(
            f"SELECT * FROM {self.TABLE} WHERE year >= {self.ph(1)} AND year <= {self.ph(1)} "
            "ORDER BY holiday_date",
            (start_year, end_year),
        )
        return [self._row_to_entry(row) for row in rows]

    @property
    def years(self) -> set[int]:
        rows = self.query(f"SELECT DISTINCT year FROM {self.TABLE} WHERE source != 'custom'")
        return {int(row["year"]) for row in rows}

    def save_entries(self, entries: list[HolidayEntry]) -> int:
        sql = self.dialect.upsert(self.TABLE, self.COLUMNS, ["holiday_date"])
        self.execute_many(sql, [self._entry_params(entry) for entry in entries])
        self.commit()
        return len(entries)

    def add_custom(self, day: date, name: str = "") -> HolidayEntry:
        entry = HolidayEntry(day=day, is_holiday=True, name=name or None, source="custom")
        self.execute(
            self.dialect.upsert(self.TABLE, self.COLUMNS, ["holiday_date"]),
            self._entry_params(entry),
        )
        self.commit()
        logger.info("custom_holiday_added", day=day.isoformat(), name=name)
        return entry

    def remove(self, day: date) -> bool:
        removed = self.rowcount(
            f"DELETE FROM {self.TABLE} WHERE holiday_date = {self.ph(1)}", (day.isoformat(),)
        )
        self.commit()
        if removed:
            logger.info("holiday_removed", day=day.isoformat())
        return removed > 0

    def build_calendar(self, start_year: int, end_year: int) -> HolidayCalendar:
        """Calendar over the stored entries for ``[start_year, end_year]``."""
        return HolidayCalendar.from_source(self, start_year, end_year)

    @staticmethod
    def _entry_params(entry: HolidayEntry) -> tuple:
        return (
            entry.day.isoformat(),
            entry.day.year,
            1 if entry.is_holiday else 0,
            1 if entry.is_adjusted_workday else 0,
            entry.name,
            entry.source,
        )

    @staticmethod
    def _row_to_entry(row: dict) -> HolidayEntry:
        return HolidayEntry(
            day=date.fromisoformat(row["holiday_date"]),
            is_holiday=bool(row["is_holiday"]),
            is_adjusted_workday=bool(row["is_adjusted_workday"]),
            name=row.get("name"),
            source=row["source"],
        )


__all__ = ["RuleRepository", "SqlHolidayCalendar", "TaskTargetRepository"]
