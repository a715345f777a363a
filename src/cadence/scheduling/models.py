"""Execution plan models.

::

    ExecutionPlan  (cadence_execution_plans row)
    ├── identity     task_id + scheduled_date + scheduled_time (unique), id (ULID)
    ├── lifecycle    status, retry_count, error_message, actual_execution_time
    ├── scheduling   due_at, priority_override, cancelled
    └── claim        claimed_by, claimed_at

Tags:
    cadence, models, scheduling, dataclasses, schema-mapping

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any


class PlanStatus(str, Enum):
    """Status of an execution plan.

    Transitions are enforced by ``PLAN_VALID_TRANSITIONS`` in
    :mod:`cadence.scheduling.state_machine`::

        PENDING   → EXECUTING | SKIPPED
        EXECUTING → COMPLETED | FAILED | PENDING (retry re-arm)
        FAILED    → PENDING (manual retry)
        COMPLETED → (terminal)
        SKIPPED   → (terminal)
    """

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({PlanStatus.COMPLETED, PlanStatus.FAILED, PlanStatus.SKIPPED})


@dataclass
class ExecutionPlan:
    """One scheduled firing of a task (``cadence_execution_plans``).

    ``due_at`` starts at the slot's civil date and time and is pushed out
    by retry backoff; the scheduler claims plans whose ``due_at`` has
    passed.
    """

    id: str
    task_id: str
    scheduled_date: date
    scheduled_time: time
    status: PlanStatus = PlanStatus.PENDING
    due_at: datetime | None = None
    generated_at: datetime | None = None
    actual_execution_time: datetime | None = None
    error_message: str | None = None
    retry_count: int = 0
    priority_override: int | None = None
    cancelled: bool = False
    claimed_by: str | None = None
    claimed_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, date, time]:
        return (self.task_id, self.scheduled_date, self.scheduled_time)

    @property
    def slot(self) -> tuple[date, time]:
        return (self.scheduled_date, self.scheduled_time)

    @property
    def scheduled_at(self) -> datetime:
        return datetime.combine(self.scheduled_date, self.scheduled_time)

    def to_dict(self) -> dict[str, Any]:
        def _iso(value: datetime | None) -> str | None:
            return value.isoformat(timespec="seconds") if value else None

        return {
            "id": self.id,
            "task_id": self.task_id,
            "scheduled_date": self.scheduled_date.isoformat(),
            "scheduled_time": self.scheduled_time.strftime("%H:%M:%S"),
            "status": self.status.value,
            "due_at": _iso(self.due_at),
            "generated_at": _iso(self.generated_at),
            "actual_execution_time": _iso(self.actual_execution_time),
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "priority_override": self.priority_override,
            "cancelled": self.cancelled,
            "claimed_by": self.claimed_by,
            "claimed_at": _iso(self.claimed_at),
        }


@dataclass
class MaterializationResult:
    """Outcome of reconciling a task's plans against its desired slots."""

    task_id: str
    plans: list[ExecutionPlan] = field(default_factory=list)
    created: int = 0
    deleted: int = 0
    retained: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "created": self.created,
            "deleted": self.deleted,
            "retained": self.retained,
            "plans": [plan.to_dict() for plan in self.plans],
        }


@dataclass
class DeliveryResult:
    """Result of a notifier delivery attempt."""

    channel_name: str
    success: bool
    message: str | None = None
    response: dict[str, Any] | None = None
    error: Exception | None = None
    retryable: bool = True
    delivered_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def ok(cls, channel_name: str, message: str | None = None, **kwargs: Any) -> DeliveryResult:
        return cls(channel_name=channel_name, success=True, message=message, **kwargs)

    @classmethod
    def fail(
        cls, channel_name: str, error: Exception | str, *, retryable: bool = True, **kwargs: Any
    ) -> DeliveryResult:
        if isinstance(error, str):
            error = RuntimeError(error)
        return cls(
            channel_name=channel_name,
            success=False,
            error=error,
            message=str(error),
            retryable=retryable,
            **kwargs,
        )


__all__ = [
    "DeliveryResult",
    "ExecutionPlan",
    "MaterializationResult",
    "PlanStatus",
    "TERMINAL_STATUSES",
]
