"""
Rule operations.

::

    compile_rule         raw mapping  → CompiledRule | VALIDATION_FAILED
    preview_occurrences  rule, window → [OccurrenceSlot]  (no writes)
    regenerate_plans     task, rule?, window → RegenerationSummary
    save_rule            compile + persist rule/target + regenerate horizon
    delete_task          cancel pending plans, deactivate target, drop rule

Windows default to ``settings.horizon_days`` days starting today in the
configured zone. Regeneration leaves slots earlier than "now" alone unless
``include_past`` is set.
"""

from __future__ import annotations

from datetime import date

from cadence.core.errors import TaskNotFoundError, ValidationError
from cadence.core.logging import get_logger
from cadence.ops.context import OperationContext
from cadence.ops.requests import (
    CompileRuleRequest,
    DeleteTaskRequest,
    PreviewOccurrencesRequest,
    RegeneratePlansRequest,
    RuleInput,
    SaveRuleRequest,
)
from cadence.ops.responses import (
    CompiledRule,
    DeleteTaskResult,
    OccurrenceSlot,
    RegenerationSummary,
    SaveRuleResult,
)
from cadence.ops.result import OperationResult, fail_from_error, start_timer
from cadence.rules.calendar import HolidayCalendar
from cadence.rules.compiler import RuleCompiler, complexity_score
from cadence.rules.models import DateWindow, ScheduleRule, TaskTarget
from cadence.rules.occurrences import resolve_occurrences
from cadence.rules.repository import RuleRepository, SqlHolidayCalendar, TaskTargetRepository
from cadence.scheduling.lock_manager import LockManager
from cadence.scheduling.materializer import ExecutionPlanMaterializer
from cadence.scheduling.models import PlanStatus
from cadence.scheduling.repository import PlanRepository

logger = get_logger(__name__)


def _compiler(ctx: OperationContext) -> RuleCompiler:
    return RuleCompiler(max_complexity=ctx.settings.max_rule_complexity)


def _rules(ctx: OperationContext) -> RuleRepository:
    return RuleRepository(ctx.conn, ctx.dialect, _compiler(ctx))


def _compile(ctx: OperationContext, rule: RuleInput) -> ScheduleRule:
    return _compiler(ctx).compile(rule)


def resolve_window(
    ctx: OperationContext,
    start: date | None = None,
    end: date | None = None,
    days: int | None = None,
) -> DateWindow:
    """Explicit bounds win; otherwise ``days`` (or the horizon) from ``start``/today."""
    start = start or ctx.today()
    if end is not None:
        if end < start:
            raise ValidationError(f"Window end {end} is before start {start}")
        return DateWindow(start, end)
    return DateWindow.from_horizon(start, days or ctx.settings.horizon_days)


def load_calendar(ctx: OperationContext, window: DateWindow) -> HolidayCalendar:
    """Stored holiday calendar covering every year the window touches."""
    return SqlHolidayCalendar(ctx.conn, ctx.dialect).build_calendar(
        window.start.year, window.end.year
    )


def _describe(rule: ScheduleRule) -> CompiledRule:
    return CompiledRule(
        rule_type=rule.rule_type.value,
        complexity=complexity_score(rule),
        rule=rule.to_dict(),
    )


def _regenerate(
    ctx: OperationContext,
    task_id: str,
    rule: ScheduleRule,
    window: DateWindow,
    include_past: bool = False,
) -> RegenerationSummary:
    dates = resolve_occurrences(rule, window, load_calendar(ctx, window))
    materializer = ExecutionPlanMaterializer(
        PlanRepository(ctx.conn, ctx.dialect),
        clock=ctx.now,
        locks=LockManager(ctx.conn, ctx.dialect, instance_id=f"ops-{ctx.request_id}"),
    )
    result = materializer.materialize(
        task_id,
        dates,
        rule.execution_times,
        window,
        not_before=None if include_past else ctx.now(),
        dry_run=ctx.dry_run,
    )
    return RegenerationSummary.from_result(result, window.start, window.end)


# ------------------------------------------------------------------ #
# Exposed operations
# ------------------------------------------------------------------ #


def compile_rule(
    ctx: OperationContext,
    request: CompileRuleRequest,
) -> OperationResult[CompiledRule]:
    """Validate a raw rule and return its canonical form.

    On failure ``error.details["errors"]`` lists every violation.
    """
    timer = start_timer()
    try:
        rule = _compile(ctx, request.rule)
        return OperationResult.ok(_describe(rule), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return fail_from_error(exc, "compile rule", elapsed_ms=timer.elapsed_ms)


def preview_occurrences(
    ctx: OperationContext,
    request: PreviewOccurrencesRequest,
) -> OperationResult[list[OccurrenceSlot]]:
    """Every (date, time) the rule fires at inside the window, in order."""
    timer = start_timer()
    try:
        rule = _compile(ctx, request.rule)
        window = resolve_window(ctx, request.start, request.end, request.days)
        dates = resolve_occurrences(rule, window, load_calendar(ctx, window))
        slots = [OccurrenceSlot(day, at) for day in dates for at in rule.execution_times]
        if request.limit is not None:
            slots = slots[: max(request.limit, 0)]
        return OperationResult.ok(
            slots,
            elapsed_ms=timer.elapsed_ms,
            metadata={
                "window_start": window.start.isoformat(),
                "window_end": window.end.isoformat(),
                "dates": len(dates),
            },
        )
    except Exception as exc:
        return fail_from_error(exc, "preview occurrences", elapsed_ms=timer.elapsed_ms)


def regenerate_plans(
    ctx: OperationContext,
    request: RegeneratePlansRequest,
) -> OperationResult[RegenerationSummary]:
    """Reconcile a task's execution plans with its rule over a window.

    Idempotent: the same inputs produce the same pending set. Pending
    plans whose slot the rule no longer produces are deleted; completed,
    failed, skipped and executing plans are kept.
    """
    timer = start_timer()
    if not request.task_id:
        return OperationResult.fail(
            "VALIDATION_FAILED", "task_id is required", elapsed_ms=timer.elapsed_ms
        )

    try:
        if request.rule is not None:
            rule = _compile(ctx, request.rule)
        else:
            rule = _rules(ctx).get(request.task_id)
            if rule is None:
                raise TaskNotFoundError(request.task_id)
        window = resolve_window(ctx, request.start, request.end)
        summary = _regenerate(ctx, request.task_id, rule, window, request.include_past)
        return OperationResult.ok(
            summary,
            elapsed_ms=timer.elapsed_ms,
            metadata={"dry_run": True} if ctx.dry_run else None,
        )
    except Exception as exc:
        return fail_from_error(exc, "regenerate plans", elapsed_ms=timer.elapsed_ms)


# ------------------------------------------------------------------ #
# Supplementary operations
# ------------------------------------------------------------------ #


def save_rule(
    ctx: OperationContext,
    request: SaveRuleRequest,
) -> OperationResult[SaveRuleResult]:
    """Compile and store a task's rule and target, then regenerate its horizon."""
    timer = start_timer()
    if not request.task_id:
        return OperationResult.fail(
            "VALIDATION_FAILED", "task_id is required", elapsed_ms=timer.elapsed_ms
        )

    try:
        rule = _compile(ctx, request.rule)
        if ctx.dry_run:
            return OperationResult.ok(
                SaveRuleResult(task_id=request.task_id, rule=_describe(rule)),
                elapsed_ms=timer.elapsed_ms,
                metadata={"dry_run": True},
            )

        targets = TaskTargetRepository(ctx.conn, ctx.dialect)
        existing = targets.get_target(request.task_id)
        targets.upsert(
            TaskTarget(
                task_id=request.task_id,
                name=request.name or (existing.name if existing else request.task_id),
                destination=request.destination or (existing.destination if existing else ""),
                description=request.description or (existing.description if existing else ""),
                message_template=request.message_template
                if request.message_template is not None
                else (existing.message_template if existing else None),
                active=True,
            )
        )
        _rules(ctx).save(request.task_id, rule)
        regeneration = _regenerate(ctx, request.task_id, rule, resolve_window(ctx))
        logger.info(
            "rule_saved",
            task_id=request.task_id,
            rule_type=rule.rule_type.value,
            created=regeneration.created,
            deleted=regeneration.deleted,
        )
        return OperationResult.ok(
            SaveRuleResult(task_id=request.task_id, rule=_describe(rule), regeneration=regeneration),
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return fail_from_error(exc, "save rule", elapsed_ms=timer.elapsed_ms)


def delete_task(
    ctx: OperationContext,
    request: DeleteTaskRequest,
) -> OperationResult[DeleteTaskResult]:
    """Stop a task: cancel its pending plans, deactivate its target, drop its rule.

    History is kept unless ``purge_history`` is set; executing plans are
    never touched.
    """
    timer = start_timer()
    try:
        rules = _rules(ctx)
        targets = TaskTargetRepository(ctx.conn, ctx.dialect)
        plans = PlanRepository(ctx.conn, ctx.dialect)

        if rules.get(request.task_id) is None and targets.get_target(request.task_id) is None:
            raise TaskNotFoundError(request.task_id)

        if ctx.dry_run:
            pending = plans.count_plans(task_id=request.task_id, statuses=[PlanStatus.PENDING])
            return OperationResult.ok(
                DeleteTaskResult(task_id=request.task_id, cancelled=pending),
                elapsed_ms=timer.elapsed_ms,
                metadata={"dry_run": True},
            )

        cancelled = plans.cancel_pending(request.task_id, ctx.now())
        deactivated = targets.deactivate(request.task_id)
        rule_deleted = rules.delete(request.task_id)
        purged = 0
        if request.purge_history:
            purged = plans.delete_for_task(
                request.task_id,
                [PlanStatus.PENDING, PlanStatus.COMPLETED, PlanStatus.FAILED, PlanStatus.SKIPPED],
            )
        logger.info(
            "task_deleted",
            task_id=request.task_id,
            cancelled=cancelled,
            purged=purged,
        )
        return OperationResult.ok(
            DeleteTaskResult(
                task_id=request.task_id,
                cancelled=cancelled,
                purged=purged,
                rule_deleted=rule_deleted,
                target_deactivated=deactivated,
            ),
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return fail_from_error(exc, "delete task", elapsed_ms=timer.elapsed_ms)
