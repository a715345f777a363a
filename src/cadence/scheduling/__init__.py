"""
Execution plans: materialization, state machine, and the scheduler loop.

Architecture:
    ::

        ExecutionPlanMaterializer ──► cadence_execution_plans ◄── SchedulerService
        (rule edits, horizon)          (pending → executing      (tick: claim,
                                        → completed/failed)       notify, record)

    ``create_scheduler`` wires a service from settings: repositories on one
    connection, the configured timing backend, retry strategy, and the
    configured notifier. ``webhook_url`` is the destination for tasks
    that carry none of their own.

Tags:
    cadence, scheduling, execution-plans, package
"""

from __future__ import annotations

from functools import partial

from cadence.core.dialect import Dialect
from cadence.core.protocols import Connection, Notifier
from cadence.core.settings import CadenceSettings, NotifierType, SchedulerBackendType, get_settings
from cadence.core.timestamps import civil_now
from cadence.rules.repository import TaskTargetRepository

from .lock_manager import LockManager
from .materializer import ExecutionPlanMaterializer
from .models import (
    TERMINAL_STATUSES,
    DeliveryResult,
    ExecutionPlan,
    MaterializationResult,
    PlanStatus,
)
from .notifier import LoggingNotifier, WebhookNotifier, render_message
from .protocol import BackendHealth, SchedulerBackend
from .repository import PlanRepository
from .retry import (
    ConstantBackoff,
    ExponentialBackoff,
    LinearBackoff,
    NoRetry,
    RetryStrategy,
    build_retry_strategy,
)
from .service import SchedulerHealth, SchedulerService, SchedulerStats, TickSummary
from .state_machine import PLAN_VALID_TRANSITIONS, PlanStateMachine, validate_plan_transition
from .thread_backend import ThreadSchedulerBackend


def create_backend(kind: SchedulerBackendType) -> SchedulerBackend:
    if kind is SchedulerBackendType.APSCHEDULER:
        from .apscheduler_backend import APSchedulerBackend

        return APSchedulerBackend()
    return ThreadSchedulerBackend()


def create_notifier(settings: CadenceSettings) -> Notifier:
    if settings.notifier is NotifierType.LOGGING:
        return LoggingNotifier()
    return WebhookNotifier(
        secret=settings.webhook_secret, timeout=settings.notifier_timeout_seconds
    )


def create_scheduler(
    conn: Connection,
    settings: CadenceSettings | None = None,
    *,
    dialect: Dialect | None = None,
    notifier: Notifier | None = None,
    backend: SchedulerBackend | None = None,
    instance_id: str | None = None,
) -> SchedulerService:
    """Build a fully wired :class:`SchedulerService`.

    Example:
        >>> scheduler = create_scheduler(conn, get_settings())
        >>> scheduler.start()
    """
    settings = settings or get_settings()
    lock_manager = LockManager(conn, dialect, instance_id=instance_id)
    return SchedulerService(
        PlanRepository(conn, dialect),
        TaskTargetRepository(conn, dialect),
        notifier or create_notifier(settings),
        clock=partial(civil_now, settings.tz),
        retry=build_retry_strategy(settings),
        backend=backend or create_backend(settings.scheduler_backend),
        lock_manager=lock_manager,
        instance_id=lock_manager.instance_id,
        default_destination=settings.webhook_url,
        interval_seconds=settings.tick_interval_seconds,
        max_concurrency=settings.max_concurrency,
        batch_size=settings.batch_size,
        notifier_timeout_seconds=settings.notifier_timeout_seconds,
        claim_lease_seconds=settings.claim_lease_seconds,
    )


__all__ = [
    "BackendHealth",
    "ConstantBackoff",
    "DeliveryResult",
    "ExecutionPlan",
    "ExecutionPlanMaterializer",
    "ExponentialBackoff",
    "LinearBackoff",
    "LockManager",
    "LoggingNotifier",
    "MaterializationResult",
    "NoRetry",
    "PLAN_VALID_TRANSITIONS",
    "PlanRepository",
    "PlanStateMachine",
    "PlanStatus",
    "RetryStrategy",
    "SchedulerBackend",
    "SchedulerHealth",
    "SchedulerService",
    "SchedulerStats",
    "TERMINAL_STATUSES",
    "ThreadSchedulerBackend",
    "TickSummary",
    "WebhookNotifier",
    "build_retry_strategy",
    "create_backend",
    "create_notifier",
    "create_scheduler",
    "render_message",
    "validate_plan_transition",
]
