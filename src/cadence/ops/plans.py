"""
Execution plan operations.

``list_upcoming`` shows what is about to fire (pending and executing plans
from today over the horizon, soonest first); ``list_history`` shows what
already happened (completed, failed and skipped plans over the past
horizon, newest first). An explicit status filter or window replaces the
defaults. ``retry_plan`` and ``skip_plan`` are the operator transitions of
the plan state machine.
"""

from __future__ import annotations

from datetime import timedelta

from cadence.core.errors import InvalidTransitionError, PlanNotFoundError
from cadence.ops.context import OperationContext
from cadence.ops.requests import ListPlansRequest, PlanActionRequest
from cadence.ops.result import OperationResult, PagedResult, fail_from_error, start_timer
from cadence.rules.models import DateWindow
from cadence.scheduling.models import ExecutionPlan, PlanStatus
from cadence.scheduling.repository import PlanRepository
from cadence.scheduling.state_machine import PlanStateMachine, validate_plan_transition

UPCOMING_STATUSES = (PlanStatus.PENDING, PlanStatus.EXECUTING)
HISTORY_STATUSES = (PlanStatus.COMPLETED, PlanStatus.FAILED, PlanStatus.SKIPPED)


def _list(
    ctx: OperationContext,
    request: ListPlansRequest,
    window: DateWindow,
    statuses: tuple[PlanStatus, ...],
    descending: bool,
) -> PagedResult[ExecutionPlan]:
    timer = start_timer()
    repo = PlanRepository(ctx.conn, ctx.dialect)
    total = repo.count_plans(task_id=request.task_id, window=window, statuses=statuses)
    items = repo.list_plans(
        task_id=request.task_id,
        window=window,
        statuses=statuses,
        descending=descending,
        limit=request.limit,
        offset=request.offset,
    )
    return PagedResult.from_items(
        items,
        total=total,
        limit=request.limit,
        offset=request.offset,
        elapsed_ms=timer.elapsed_ms,
        metadata={"window_start": window.start.isoformat(), "window_end": window.end.isoformat()},
    )


def list_upcoming(ctx: OperationContext, request: ListPlansRequest) -> PagedResult[ExecutionPlan]:
    """Plans scheduled in the window, ascending by date and time."""
    try:
        today = ctx.today()
        start = request.start or today
        end = request.end or start + timedelta(days=ctx.settings.horizon_days - 1)
        window = DateWindow(start, end)
        return _list(ctx, request, window, request.statuses or UPCOMING_STATUSES, descending=False)
    except Exception as exc:
        return _paged_failure(exc, "list upcoming plans")


def list_history(ctx: OperationContext, request: ListPlansRequest) -> PagedResult[ExecutionPlan]:
    """Plans scheduled in the window, descending, with the total count."""
    try:
        today = ctx.today()
        end = request.end or today
        start = request.start or end - timedelta(days=ctx.settings.horizon_days - 1)
        window = DateWindow(start, end)
        return _list(ctx, request, window, request.statuses or HISTORY_STATUSES, descending=True)
    except Exception as exc:
        return _paged_failure(exc, "list plan history")


def _paged_failure(exc: Exception, action: str) -> PagedResult[ExecutionPlan]:
    failed = fail_from_error(exc, action)
    return PagedResult(success=False, error=failed.error, elapsed_ms=failed.elapsed_ms)


def retry_plan(ctx: OperationContext, request: PlanActionRequest) -> OperationResult[ExecutionPlan]:
    """failed → pending, due now, retry count reset."""
    return _transition(ctx, request, PlanStatus.PENDING, "retry plan")


def skip_plan(ctx: OperationContext, request: PlanActionRequest) -> OperationResult[ExecutionPlan]:
    """pending → skipped."""
    return _transition(ctx, request, PlanStatus.SKIPPED, "skip plan")


def _transition(
    ctx: OperationContext,
    request: PlanActionRequest,
    target: PlanStatus,
    action: str,
) -> OperationResult[ExecutionPlan]:
    timer = start_timer()
    if not request.plan_id:
        return OperationResult.fail(
            "VALIDATION_FAILED", "plan_id is required", elapsed_ms=timer.elapsed_ms
        )
    try:
        repo = PlanRepository(ctx.conn, ctx.dialect)
        if ctx.dry_run:
            plan = repo.get(request.plan_id)
            if plan is None:
                raise PlanNotFoundError(request.plan_id)
            if target is PlanStatus.PENDING and plan.status is not PlanStatus.FAILED:
                raise InvalidTransitionError(plan.status.value, target.value)
            validate_plan_transition(plan.status, target)
            return OperationResult.ok(plan, elapsed_ms=timer.elapsed_ms, metadata={"dry_run": True})

        machine = PlanStateMachine(repo, instance_id=f"ops-{ctx.caller}")
        if target is PlanStatus.SKIPPED:
            plan = machine.skip(request.plan_id, ctx.now())
        else:
            plan = machine.retry_now(request.plan_id, ctx.now())
        return OperationResult.ok(plan, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return fail_from_error(exc, action, elapsed_ms=timer.elapsed_ms)
