"""
Execution plan materializer: reconcile stored plans with desired slots.

Manifesto:
    Rules change; history must not. When a rule is edited the materializer
    brings the pending future in line with the new rule and leaves
    everything that already happened (or is happening) exactly as it was.

Architecture:
    ::

        desired = {(d, t) : d ∈ dates ∩ window, t ∈ execution_times}

        existing plan in window          action
        ─────────────────────────────    ─────────────────────
        key ∈ desired                    untouched
        key ∉ desired, pending           deleted
        key ∉ desired, executing         retained (in flight)
        key ∉ desired, terminal          retained (history)

        desired key without a plan  ──►  INSERT-or-ignore pending

        slot before not_before       ──►  frozen: neither created nor deleted

    Serialization per task:
        in-process   threading.Lock keyed by task_id
        cross-replica LockManager "regenerate:<task_id>" (TTL)
                      held elsewhere → RegenerationConflict (retryable)

    Materializing the same inputs twice yields the same pending set; the
    second run creates and deletes nothing.

Tags:
    cadence, scheduling, materialization, reconciliation, idempotency

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from datetime import date, datetime, time

from cadence.core.errors import RegenerationConflict
from cadence.core.logging import get_logger
from cadence.rules.models import DateWindow
from cadence.scheduling.lock_manager import LockManager
from cadence.scheduling.models import ExecutionPlan, MaterializationResult, PlanStatus
from cadence.scheduling.repository import PlanRepository

logger = get_logger(__name__)

_registry_lock = threading.Lock()
_task_locks: dict[str, threading.Lock] = {}


def _task_lock(task_id: str) -> threading.Lock:
    with _registry_lock:
        lock = _task_locks.get(task_id)
        if lock is None:
            lock = _task_locks[task_id] = threading.Lock()
        return lock


class ExecutionPlanMaterializer:
    """The only creator of execution plans.

    Args:
        plans: Plan repository.
        clock: Returns the current civil time (naive, configured zone).
        locks: Cross-replica lock manager; omitted for single-instance use.
        lock_ttl_seconds: TTL of the regeneration lock.
    """

    def __init__(
        self,
        plans: PlanRepository,
        clock: Callable[[], datetime],
        locks: LockManager | None = None,
        lock_ttl_seconds: int = 300,
    ) -> None:
        self.plans = plans
        self.clock = clock
        self.locks = locks
        self.lock_ttl_seconds = lock_ttl_seconds

    def materialize(
        self,
        task_id: str,
        dates: Iterable[date],
        execution_times: Iterable[time],
        window: DateWindow,
        not_before: datetime | None = None,
        dry_run: bool = False,
    ) -> MaterializationResult:
        """Reconcile ``task_id``'s plans in ``window`` with ``dates`` x ``execution_times``.

        Slots scheduled before ``not_before`` are frozen: no plan is created
        for them and existing plans for them are left as they are. With
        ``dry_run`` the counts are computed and nothing is written.
        """
        if dry_run:
            return self._diff(task_id, dates, execution_times, window, not_before)
        with _task_lock(task_id):
            if self.locks is None:
                return self._reconcile(task_id, dates, execution_times, window, not_before)
            with self.locks.held("regenerate", task_id, self.lock_ttl_seconds) as acquired:
                if not acquired:
                    raise RegenerationConflict(task_id).with_context(task_id=task_id)
                return self._reconcile(task_id, dates, execution_times, window, not_before)

    def _plan_changes(
        self,
        task_id: str,
        dates: Iterable[date],
        execution_times: Iterable[time],
        window: DateWindow,
        not_before: datetime | None,
    ) -> tuple[list[ExecutionPlan], set[tuple[date, time]], list[str], int]:
        """(existing plans, slots to insert, pending ids to delete, retained count)."""

        def frozen(slot: tuple[date, time]) -> bool:
            return not_before is not None and datetime.combine(*slot) < not_before

        times = list(execution_times)
        desired = {(d, t) for d in dates if d in window for t in times}
        desired = {slot for slot in desired if not frozen(slot)}

        existing = self.plans.list_for_task(task_id, window)
        # cancelled pending plans (left by delete_task) are replaced, not kept
        live = [p for p in existing if not (p.cancelled and p.status is PlanStatus.PENDING)]
        missing = desired - {plan.slot for plan in live}
        stale_pending = [
            plan.id
            for plan in existing
            if plan.status is PlanStatus.PENDING
            and not frozen(plan.slot)
            and (plan.slot not in desired or plan.cancelled)
        ]
        retained = sum(
            1
            for plan in existing
            if plan.slot not in desired and plan.status is not PlanStatus.PENDING
        )
        return existing, missing, stale_pending, retained

    def _diff(
        self,
        task_id: str,
        dates: Iterable[date],
        execution_times: Iterable[time],
        window: DateWindow,
        not_before: datetime | None,
    ) -> MaterializationResult:
        existing, missing, stale_pending, retained = self._plan_changes(
            task_id, dates, execution_times, window, not_before
        )
        return MaterializationResult(
            task_id=task_id,
            plans=existing,
            created=len(missing),
            deleted=len(stale_pending),
            retained=retained,
        )

    def _reconcile(
        self,
        task_id: str,
        dates: Iterable[date],
        execution_times: Iterable[time],
        window: DateWindow,
        not_before: datetime | None,
    ) -> MaterializationResult:
        try:
            _, missing, stale_pending, retained = self._plan_changes(
                task_id, dates, execution_times, window, not_before
            )
            deleted = self.plans.delete_pending(stale_pending)
            created = self.plans.insert_missing(task_id, missing, self.clock())
            self.plans.commit()
        except Exception:
            self.plans.rollback()
            raise

        result = MaterializationResult(
            task_id=task_id,
            plans=self.plans.list_for_task(task_id, window),
            created=created,
            deleted=deleted,
            retained=retained,
        )
        logger.info(
            "plans_materialized",
            task_id=task_id,
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
            created=created,
            deleted=deleted,
            retained=retained,
        )
        return result


__all__ = ["ExecutionPlanMaterializer"]
