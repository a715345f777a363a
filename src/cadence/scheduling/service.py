"""
Scheduler service: claims due execution plans and delivers them.

Manifesto:
    Timing and evaluation are separate. A backend ticks; every tick asks
    the plan table what is due *now* and works through it. Nothing about
    the schedule lives in memory, so any number of replicas can tick the
    same database: the compare-and-set claim decides which one sends.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────────┐
        │  SchedulerService.tick()                                          │
        │                                                                   │
        │  1. recover stale claims                                          │
        │     executing AND claimed_at < now - claim_lease                  │
        │       └── state_machine.fail("claim lease expired")               │
        │                                                                   │
        │  2. plans.due(now, batch_size)                                    │
        │     pending, cancelled = 0, due_at <= now                         │
        │     ORDER BY due_at, priority_override DESC                       │
        │                                                                   │
        │  3. asyncio.gather over due plans, Semaphore(max_concurrency)     │
        │     ├── claim (CAS)          ClaimConflict → no-op                │
        │     ├── target lookup        missing/inactive → non-retryable     │
        │     ├── render_message                                            │
        │     ├── notifier.send        bounded by notifier_timeout          │
        │     ├── success  → completed                                      │
        │     └── failure  → retry re-arm or terminal failed                │
        │                                                                   │
        │  An error in one plan is recorded on that plan; it never aborts   │
        │  the tick or the other plans.                                     │
        └──────────────────────────────────────────────────────────────────┘

    Beat-as-poller: ``start()`` hands ``tick`` to the timing backend;
    tests simply ``await service.tick()``.

Tags:
    cadence, scheduling, orchestrator, beat-as-poller, asyncio, service

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from cadence.core.errors import (
    CadenceError,
    ClaimConflict,
    NotifierFailure,
    NotifierTimeout,
    TaskNotFoundError,
    TransientError,
    ValidationError,
)
from cadence.core.logging import LogContext, get_logger
from cadence.core.protocols import Notifier, TaskDirectory
from cadence.scheduling.lock_manager import LockManager
from cadence.scheduling.models import ExecutionPlan, PlanStatus
from cadence.scheduling.notifier import render_message
from cadence.scheduling.protocol import SchedulerBackend
from cadence.scheduling.repository import PlanRepository
from cadence.scheduling.retry import RetryStrategy
from cadence.scheduling.state_machine import PlanStateMachine
from cadence.scheduling.timeout import TimeoutExpired, call_with_timeout

logger = get_logger(__name__)

LEASE_EXPIRED_MESSAGE = "claim lease expired"


@dataclass
class TickSummary:
    """What one tick did."""

    due: int = 0
    claimed: int = 0
    completed: int = 0
    failed: int = 0
    retried: int = 0
    conflicts: int = 0
    recovered: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class SchedulerStats:
    """Cumulative counters since the service was created."""

    tick_count: int = 0
    claimed: int = 0
    completed: int = 0
    failed: int = 0
    retried: int = 0
    conflicts: int = 0
    recovered: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None

    def absorb(self, summary: TickSummary) -> None:
        self.claimed += summary.claimed
        self.completed += summary.completed
        self.failed += summary.failed
        self.retried += summary.retried
        self.conflicts += summary.conflicts
        self.recovered += summary.recovered

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_tick"] = self.last_tick.isoformat() if self.last_tick else None
        return data


@dataclass
class SchedulerHealth:
    healthy: bool
    running: bool
    backend: dict[str, Any] | None
    instance_id: str
    active_locks: int = 0
    stats: SchedulerStats = field(default_factory=SchedulerStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "running": self.running,
            "backend": self.backend,
            "instance_id": self.instance_id,
            "active_locks": self.active_locks,
            "stats": self.stats.to_dict(),
        }


class SchedulerService:
    """Periodic driver that turns due plans into notifications.

    Args:
        plans: Plan repository.
        targets: Resolves task ids to delivery targets.
        notifier: Delivery channel (sync or async ``send``).
        clock: Current civil time (naive, configured zone).
        retry: Retry strategy for failed deliveries.
        backend: Timing backend; only needed for ``start()``.
        lock_manager: Used for periodic cleanup of expired locks.
        instance_id: Recorded as ``claimed_by``.
        default_destination: Used for targets without a destination.

    Example:
        >>> service = SchedulerService(plans, targets, LoggingNotifier(), clock=clock)
        >>> summary = await service.tick()
        >>> summary.completed
        3
    """

    lock_cleanup_every = 10

    def __init__(
        self,
        plans: PlanRepository,
        targets: TaskDirectory,
        notifier: Notifier,
        *,
        clock: Callable[[], datetime],
        retry: RetryStrategy | None = None,
        backend: SchedulerBackend | None = None,
        lock_manager: LockManager | None = None,
        instance_id: str | None = None,
        default_destination: str | None = None,
        interval_seconds: float = 60.0,
        max_concurrency: int = 8,
        batch_size: int = 200,
        notifier_timeout_seconds: float = 10.0,
        claim_lease_seconds: int = 300,
    ) -> None:
        self.plans = plans
        self.targets = targets
        self.notifier = notifier
        self.clock = clock
        self.backend = backend
        self.lock_manager = lock_manager
        self.instance_id = instance_id or f"cadence-{uuid4().hex[:8]}"
        self.default_destination = default_destination
        self.interval = interval_seconds
        self.max_concurrency = max(1, max_concurrency)
        self.batch_size = batch_size
        self.notifier_timeout = notifier_timeout_seconds
        self.claim_lease = timedelta(seconds=claim_lease_seconds)
        self.state_machine = PlanStateMachine(plans, retry=retry, instance_id=self.instance_id)

        self._stats = SchedulerStats()
        self._running = False

    # === Lifecycle ===

    def start(self) -> None:
        if self.backend is None:
            raise RuntimeError("SchedulerService.start() requires a timing backend")
        if self._running:
            logger.warning("scheduler_already_running", instance_id=self.instance_id)
            return
        logger.info(
            "scheduler_starting",
            backend=self.backend.name,
            interval_seconds=self.interval,
            instance_id=self.instance_id,
        )
        self.backend.start(self.tick, self.interval)
        self._running = True

    def stop(self) -> None:
        if not self._running or self.backend is None:
            return
        self.backend.stop()
        self._running = False
        logger.info("scheduler_stopped", instance_id=self.instance_id)

    @property
    def is_running(self) -> bool:
        return self._running

    # === Tick ===

    async def tick(self) -> TickSummary:
        """Run one scheduling pass."""
        summary = TickSummary()
        self._stats.tick_count += 1
        self._stats.last_tick = datetime.now(UTC)
        now = self.clock()

        try:
            if self.lock_manager is not None and self._stats.tick_count % self.lock_cleanup_every == 0:
                self.lock_manager.cleanup_expired_locks()

            self._recover_stale_claims(now, summary)

            due = self.plans.due(now, self.batch_size)
            summary.due = len(due)
            if due:
                logger.info("plans_due", count=len(due), instance_id=self.instance_id)
                semaphore = asyncio.Semaphore(self.max_concurrency)
                await asyncio.gather(*(self._process(plan, semaphore, summary) for plan in due))
        except Exception as e:
            self._stats.last_error = str(e)
            logger.exception("tick_failed", instance_id=self.instance_id)
        finally:
            self._stats.absorb(summary)

        if summary.due or summary.recovered:
            logger.info("tick_completed", **summary.to_dict())
        return summary

    def _recover_stale_claims(self, now: datetime, summary: TickSummary) -> None:
        for plan in self.plans.stale_claims(now - self.claim_lease):
            with LogContext(plan_id=plan.id, task_id=plan.task_id):
                outcome = self.state_machine.fail(
                    plan, TransientError(LEASE_EXPIRED_MESSAGE), now
                )
                if outcome is None:
                    continue
                summary.recovered += 1
                logger.warning(
                    "stale_claim_recovered",
                    claimed_by=plan.claimed_by,
                    outcome=outcome.value,
                )

    async def _process(
        self, plan: ExecutionPlan, semaphore: asyncio.Semaphore, summary: TickSummary
    ) -> None:
        async with semaphore:
            with LogContext(plan_id=plan.id, task_id=plan.task_id):
                try:
                    await self._execute(plan, summary)
                except Exception:
                    # bookkeeping failure (e.g. database) after the claim
                    logger.exception("plan_processing_failed")

    async def _execute(self, plan: ExecutionPlan, summary: TickSummary) -> None:
        try:
            claimed = self.state_machine.claim(plan, self.clock())
        except ClaimConflict:
            summary.conflicts += 1
            logger.debug("plan_claim_conflict")
            return
        summary.claimed += 1

        try:
            await self._deliver(claimed)
        except Exception as e:
            error = _as_delivery_error(e, self.notifier_timeout)
            outcome = self.state_machine.fail(claimed, error, self.clock())
            if outcome is PlanStatus.PENDING:
                summary.retried += 1
                logger.warning("plan_failed_retrying", error=error.message, attempt=claimed.retry_count + 1)
            elif outcome is PlanStatus.FAILED:
                summary.failed += 1
                logger.error("plan_failed", error=error.message, attempts=claimed.retry_count + 1)
            return

        if self.state_machine.complete(claimed, self.clock()):
            summary.completed += 1
            logger.info("plan_completed")

    async def _deliver(self, plan: ExecutionPlan) -> None:
        target = self.targets.get_target(plan.task_id)
        if target is None:
            raise TaskNotFoundError(plan.task_id, retryable=False)
        if not target.active:
            raise ValidationError(f"Task {plan.task_id} is inactive", retryable=False)

        destination = target.destination or self.default_destination
        if not destination:
            raise ValidationError(f"Task {plan.task_id} has no destination", retryable=False)

        message = render_message(target, plan, self.clock())
        result = await call_with_timeout(
            self.notifier.send,
            destination,
            message,
            timeout_seconds=self.notifier_timeout,
            operation="notifier.send",
        )
        if result is None or not result.success:
            reason = (result.message if result is not None else None) or "Notifier reported failure"
            raise NotifierFailure(
                reason,
                retryable=result.retryable if result is not None else True,
                cause=result.error if result is not None else None,
            )

    # === Manual operations ===

    def cancel_task(self, task_id: str) -> int:
        """Mark every pending plan of ``task_id`` cancelled; returns the count."""
        count = self.plans.cancel_pending(task_id, self.clock())
        logger.info("task_plans_cancelled", task_id=task_id, count=count)
        return count

    def skip(self, plan_id: str) -> ExecutionPlan:
        return self.state_machine.skip(plan_id, self.clock())

    def retry(self, plan_id: str) -> ExecutionPlan:
        return self.state_machine.retry_now(plan_id, self.clock())

    # === Health ===

    def health(self) -> SchedulerHealth:
        backend_health = self.backend.health() if self.backend is not None else None
        active_locks = len(self.lock_manager.list_active_locks()) if self.lock_manager else 0
        backend_ok = backend_health.get("healthy", False) if backend_health else False
        return SchedulerHealth(
            healthy=self._running and backend_ok,
            running=self._running,
            backend=backend_health,
            instance_id=self.instance_id,
            active_locks=active_locks,
            stats=self._stats,
        )

    def get_stats(self) -> SchedulerStats:
        return self._stats

    def reset_stats(self) -> None:
        self._stats = SchedulerStats()


def _as_delivery_error(error: Exception, timeout: float) -> CadenceError:
    if isinstance(error, TimeoutExpired):
        return NotifierTimeout(str(error), timeout=timeout, cause=error)
    if isinstance(error, CadenceError):
        return error
    return NotifierFailure(str(error) or type(error).__name__, cause=error)


__all__ = [
    "SchedulerHealth",
    "SchedulerService",
    "SchedulerStats",
    "TickSummary",
]
