"""
Execution plan persistence.

┌──────────────────────────────────────────────────────────────────────────────┐
│  PLAN REPOSITORY                                                             │
│                                                                              │
│  Materialization:                                                            │
│  ├── insert_missing(task_id, slots, now)  → int (INSERT-or-ignore per slot)  │
│  ├── list_for_task(task_id, window)       → [ExecutionPlan]                  │
│  └── delete_pending(ids)                  → int (guarded by status)          │
│                                                                              │
│  Scheduling:                                                                 │
│  ├── due(now, limit)                      → pending, uncancelled, due        │
│  ├── stale_claims(cutoff)                 → executing past lease             │
│  └── compare_and_set(id, expected, target, fields, guards) → bool            │
│                                                                              │
│  Queries:                                                                    │
│  ├── get(id) / list_plans(...) / count_plans(...)                            │
│  └── cancel_pending(task_id)              → int                              │
└──────────────────────────────────────────────────────────────────────────────┘

Every status change goes through ``compare_and_set``: an UPDATE whose
WHERE clause repeats the expected status (and any extra guards), so two
writers racing on one plan cannot both win. ``rowcount == 0`` is the
losing side.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time
from typing import Any

from cadence.core.logging import get_logger
from cadence.core.repository import BaseRepository
from cadence.core.timestamps import combine_civil, format_civil, generate_ulid, parse_civil
from cadence.rules.models import DateWindow
from cadence.scheduling.models import ExecutionPlan, PlanStatus

logger = get_logger(__name__)

TABLE = "cadence_execution_plans"

_INSERT_COLUMNS = [
    "id", "task_id", "scheduled_date", "scheduled_time", "status",
    "due_at", "generated_at", "retry_count", "cancelled", "updated_at",
]


def format_time(value: time) -> str:
    return value.strftime("%H:%M:%S")


class PlanRepository(BaseRepository):
    """Dialect-aware access to ``cadence_execution_plans``."""

    # -- materialization ---------------------------------------------------

    def insert_missing(
        self, task_id: str, slots: Iterable[tuple[date, time]], now: datetime
    ) -> int:
        """Insert a pending plan for each slot; existing keys are left alone."""
        sql = self.dialect.insert_or_ignore(TABLE, _INSERT_COLUMNS)
        stamp = format_civil(now)
        created = 0
        for day, at in sorted(slots):
            created += max(
                self.rowcount(
                    sql,
                    (
                        generate_ulid(),
                        task_id,
                        day.isoformat(),
                        format_time(at),
                        PlanStatus.PENDING.value,
                        combine_civil(day, at),
                        stamp,
                        0,
                        0,
                        stamp,
                    ),
                ),
                0,
            )
        return created

    def list_for_task(self, task_id: str, window: DateWindow) -> list[ExecutionPlan]:
        rows = self.query(
            f"SELECT * FROM {TABLE} WHERE task_id = {self.ph(1)} "
            f"AND scheduled_date >= {self.ph(1)} AND scheduled_date <= {self.ph(1)} "
            "ORDER BY scheduled_date, scheduled_time",
            (task_id, window.start.isoformat(), window.end.isoformat()),
        )
        return [self._row_to_plan(row) for row in rows]

    def delete_pending(self, plan_ids: list[str]) -> int:
        deleted = 0
        for plan_id in plan_ids:
            deleted += max(
                self.rowcount(
                    f"DELETE FROM {TABLE} WHERE id = {self.ph(1)} AND status = {self.ph(1)}",
                    (plan_id, PlanStatus.PENDING.value),
                ),
                0,
            )
        return deleted

    # -- scheduling ---------------------------------------------------------

    def due(self, now: datetime, limit: int) -> list[ExecutionPlan]:
        """Pending, uncancelled plans due at ``now``, oldest first, then by priority."""
        rows = self.query(
            f"SELECT * FROM {TABLE} WHERE status = {self.ph(1)} AND cancelled = 0 "
            f"AND due_at <= {self.ph(1)} "
            "ORDER BY due_at, COALESCE(priority_override, 0) DESC, id "
            f"LIMIT {int(limit)}",
            (PlanStatus.PENDING.value, format_civil(now)),
        )
        return [self._row_to_plan(row) for row in rows]

    def stale_claims(self, cutoff: datetime) -> list[ExecutionPlan]:
        rows = self.query(
            f"SELECT * FROM {TABLE} WHERE status = {self.ph(1)} "
            f"AND claimed_at IS NOT NULL AND claimed_at < {self.ph(1)} ORDER BY claimed_at",
            (PlanStatus.EXECUTING.value, format_civil(cutoff)),
        )
        return [self._row_to_plan(row) for row in rows]

    def compare_and_set(
        self,
        plan_id: str,
        expected: PlanStatus,
        target: PlanStatus,
        fields: dict[str, Any] | None = None,
        guards: dict[str, Any] | None = None,
        due_before: datetime | None = None,
    ) -> bool:
        """Move ``plan_id`` from ``expected`` to ``target`` atomically.

        Args:
            fields: Extra columns to set alongside the status.
            guards: Extra ``column = value`` preconditions.
            due_before: Additional ``due_at <= value`` precondition.

        Returns:
            True when this call performed the transition.
        """
        assignments = {"status": target.value, **(fields or {})}
        set_sql = ", ".join(f"{column} = {self.ph(1)}" for column in assignments)
        where = [f"id = {self.ph(1)}", f"status = {self.ph(1)}"]
        params: list[Any] = [*(_to_db(v) for v in assignments.values()), plan_id, expected.value]
        for column, value in (guards or {}).items():
            where.append(f"{column} = {self.ph(1)}")
            params.append(_to_db(value))
        if due_before is not None:
            where.append(f"due_at <= {self.ph(1)}")
            params.append(format_civil(due_before))

        changed = self.rowcount(
            f"UPDATE {TABLE} SET {set_sql} WHERE {' AND '.join(where)}", tuple(params)
        )
        self.commit()
        return changed > 0

    def cancel_pending(self, task_id: str, now: datetime) -> int:
        changed = self.rowcount(
            f"UPDATE {TABLE} SET cancelled = 1, updated_at = {self.ph(1)} "
            f"WHERE task_id = {self.ph(1)} AND status = {self.ph(1)} AND cancelled = 0",
            (format_civil(now), task_id, PlanStatus.PENDING.value),
        )
        self.commit()
        return max(changed, 0)

    # -- queries ------------------------------------------------------------

    def get(self, plan_id: str) -> ExecutionPlan | None:
        row = self.query_one(f"SELECT * FROM {TABLE} WHERE id = {self.ph(1)}", (plan_id,))
        return self._row_to_plan(row) if row else None

    def _filters(
        self,
        task_id: str | None,
        window: DateWindow | None,
        statuses: Iterable[PlanStatus] | None,
    ) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if task_id is not None:
            clauses.append(f"task_id = {self.ph(1)}")
            params.append(task_id)
        if window is not None:
            clauses.append(f"scheduled_date >= {self.ph(1)} AND scheduled_date <= {self.ph(1)}")
            params.extend([window.start.isoformat(), window.end.isoformat()])
        status_values = [PlanStatus(s).value for s in statuses or []]
        if status_values:
            clauses.append(f"status IN ({self.ph(len(status_values))})")
            params.extend(status_values)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def list_plans(
        self,
        *,
        task_id: str | None = None,
        window: DateWindow | None = None,
        statuses: Iterable[PlanStatus] | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ExecutionPlan]:
        where, params = self._filters(task_id, window, statuses)
        order = "DESC" if descending else "ASC"
        sql = (
            f"SELECT * FROM {TABLE}{where} "
            f"ORDER BY scheduled_date {order}, scheduled_time {order}, task_id"
        )
        if limit is not None:
            sql += f" LIMIT {int(limit)} OFFSET {int(offset)}"
        return [self._row_to_plan(row) for row in self.query(sql, tuple(params))]

    def count_plans(
        self,
        *,
        task_id: str | None = None,
        window: DateWindow | None = None,
        statuses: Iterable[PlanStatus] | None = None,
    ) -> int:
        where, params = self._filters(task_id, window, statuses)
        row = self.query_one(f"SELECT COUNT(*) AS cnt FROM {TABLE}{where}", tuple(params))
        return int(row["cnt"]) if row else 0

    def delete_for_task(self, task_id: str, statuses: Iterable[PlanStatus]) -> int:
        values = [PlanStatus(s).value for s in statuses]
        changed = self.rowcount(
            f"DELETE FROM {TABLE} WHERE task_id = {self.ph(1)} AND status IN ({self.ph(len(values))})",
            (task_id, *values),
        )
        self.commit()
        return max(changed, 0)

    @staticmethod
    def _row_to_plan(row: dict[str, Any]) -> ExecutionPlan:
        return ExecutionPlan(
            id=row["id"],
            task_id=row["task_id"],
            scheduled_date=date.fromisoformat(row["scheduled_date"]),
            scheduled_time=time.fromisoformat(row["scheduled_time"]),
            status=PlanStatus(row["status"]),
            due_at=parse_civil(row.get("due_at")),
            generated_at=parse_civil(row.get("generated_at")),
            actual_execution_time=parse_civil(row.get("actual_execution_time")),
            error_message=row.get("error_message"),
            retry_count=int(row.get("retry_count") or 0),
            priority_override=row.get("priority_override"),
            cancelled=bool(row.get("cancelled")),
            claimed_by=row.get("claimed_by"),
            claimed_at=parse_civil(row.get("claimed_at")),
            updated_at=parse_civil(row.get("updated_at")),
        )


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_civil(value)
    if isinstance(value, PlanStatus):
        return value.value
    if isinstance(value, bool):
        return 1 if value else 0
    return value


__all__ = ["PlanRepository", "format_time"]
