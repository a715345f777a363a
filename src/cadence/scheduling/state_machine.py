"""
Plan state machine: the only way a plan's status changes.

Manifesto:
    Several actors touch a plan: scheduler replicas claiming it, the
    stale-claim sweeper, operators skipping or retrying it, and the
    materializer reconciling it. One transition table decides what is
    legal; one compare-and-set on the stored row decides who wins.

Architecture:
    ::

        PLAN_VALID_TRANSITIONS
        ┌───────────┬───────────────────────────────────────────┐
        │ pending   │ executing (claim) | skipped (skip)        │
        │ executing │ completed | failed | pending (re-arm)     │
        │ failed    │ pending (manual retry)                    │
        │ completed │ (terminal)                                │
        │ skipped   │ (terminal)                                │
        └───────────┴───────────────────────────────────────────┘

        claim:  UPDATE … SET status='executing'
                WHERE id=? AND status='pending' AND cancelled=0 AND due_at<=now
                rowcount 0 → ClaimConflict

        fail:   retry_count += 1
                strategy.should_retry(retry_count, error)
                  yes → pending, due_at = now + next_delay(retry_count - 1)
                  no  → failed (terminal until a manual retry)

Tags:
    cadence, state-machine, compare-and-set, retry, concurrency

Doc-Types:
    api-reference
"""

from __future__ import annotations

from datetime import datetime, timedelta

from cadence.core.errors import (
    ClaimConflict,
    InvalidTransitionError,
    PlanNotFoundError,
)
from cadence.core.logging import get_logger
from cadence.scheduling.models import ExecutionPlan, PlanStatus
from cadence.scheduling.repository import PlanRepository
from cadence.scheduling.retry import NoRetry, RetryStrategy

logger = get_logger(__name__)


PLAN_VALID_TRANSITIONS: dict[PlanStatus, frozenset[PlanStatus]] = {
    PlanStatus.PENDING: frozenset({
        PlanStatus.EXECUTING,
        PlanStatus.SKIPPED,
    }),
    PlanStatus.EXECUTING: frozenset({
        PlanStatus.COMPLETED,
        PlanStatus.FAILED,
        PlanStatus.PENDING,  # retry re-arm
    }),
    PlanStatus.FAILED: frozenset({
        PlanStatus.PENDING,  # manual retry
    }),
    PlanStatus.COMPLETED: frozenset(),  # terminal
    PlanStatus.SKIPPED: frozenset(),  # terminal
}


def validate_plan_transition(current: PlanStatus, target: PlanStatus) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_plan_transition(PlanStatus.PENDING, PlanStatus.EXECUTING)
        >>> validate_plan_transition(PlanStatus.COMPLETED, PlanStatus.PENDING)
        InvalidTransitionError: Invalid PlanStatus transition: completed → pending
    """
    allowed = PLAN_VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value)


def _claim_guard(plan: ExecutionPlan) -> dict | None:
    # a plan re-claimed by another instance after lease expiry is not ours to finish
    return {"claimed_by": plan.claimed_by} if plan.claimed_by else None


class PlanStateMachine:
    """Applies validated transitions as compare-and-set updates.

    Args:
        plans: Plan repository.
        retry: Strategy deciding whether a failed plan is re-armed.
        instance_id: Recorded as ``claimed_by`` on successful claims.
    """

    def __init__(
        self,
        plans: PlanRepository,
        retry: RetryStrategy | None = None,
        instance_id: str = "cadence",
    ) -> None:
        self.plans = plans
        self.retry = retry or NoRetry()
        self.instance_id = instance_id

    def _transition(
        self,
        plan: ExecutionPlan,
        target: PlanStatus,
        now: datetime,
        fields: dict | None = None,
        guards: dict | None = None,
        due_before: datetime | None = None,
    ) -> bool:
        validate_plan_transition(plan.status, target)
        return self.plans.compare_and_set(
            plan.id,
            plan.status,
            target,
            fields={**(fields or {}), "updated_at": now},
            guards=guards,
            due_before=due_before,
        )

    def _require(self, plan_id: str) -> ExecutionPlan:
        plan = self.plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    # -- scheduler transitions ----------------------------------------------

    def claim(self, plan: ExecutionPlan, now: datetime) -> ExecutionPlan:
        """pending → executing. Losing the race raises :class:`ClaimConflict`."""
        if plan.status is not PlanStatus.PENDING:
            raise ClaimConflict(plan.id, f"Plan {plan.id} is {plan.status.value}")
        won = self._transition(
            plan,
            PlanStatus.EXECUTING,
            now,
            fields={"claimed_by": self.instance_id, "claimed_at": now},
            guards={"cancelled": 0},
            due_before=now,
        )
        if not won:
            raise ClaimConflict(plan.id)
        claimed = self.plans.get(plan.id)
        if claimed is None:
            raise ClaimConflict(plan.id, f"Plan {plan.id} disappeared after claim")
        return claimed

    def complete(self, plan: ExecutionPlan, now: datetime) -> bool:
        """executing → completed. False if the claim was lost meanwhile."""
        done = self._transition(
            plan,
            PlanStatus.COMPLETED,
            now,
            fields={"actual_execution_time": now, "error_message": None},
            guards=_claim_guard(plan),
        )
        if not done:
            logger.warning("plan_claim_lost", plan_id=plan.id, target=PlanStatus.COMPLETED.value)
        return done

    def fail(self, plan: ExecutionPlan, error: Exception | str, now: datetime) -> PlanStatus | None:
        """Record a failure; re-arm as pending or store terminal failed.

        Returns the resulting status, or None if the claim was lost.
        """
        failures = plan.retry_count + 1
        message = str(error) or type(error).__name__
        exc = error if isinstance(error, Exception) else None
        guards = _claim_guard(plan)

        if self.retry.should_retry(failures, exc):
            due = now + timedelta(seconds=self.retry.next_delay(failures - 1))
            target = PlanStatus.PENDING
            fields = {
                "retry_count": failures,
                "error_message": message,
                "due_at": due,
                "claimed_by": None,
                "claimed_at": None,
            }
        else:
            target = PlanStatus.FAILED
            fields = {
                "retry_count": failures,
                "error_message": message,
                "actual_execution_time": now,
            }

        if not self._transition(plan, target, now, fields=fields, guards=guards):
            logger.warning("plan_claim_lost", plan_id=plan.id, target=target.value)
            return None
        return target

    # -- operator transitions ------------------------------------------------

    def skip(self, plan_id: str, now: datetime) -> ExecutionPlan:
        """pending → skipped."""
        plan = self._require(plan_id)
        if not self._transition(plan, PlanStatus.SKIPPED, now):
            current = self._require(plan_id)
            raise InvalidTransitionError(current.status.value, PlanStatus.SKIPPED.value)
        logger.info("plan_skipped", plan_id=plan_id, task_id=plan.task_id)
        return self._require(plan_id)

    def retry_now(self, plan_id: str, now: datetime) -> ExecutionPlan:
        """failed → pending, due immediately, retry budget reset."""
        plan = self._require(plan_id)
        if plan.status is not PlanStatus.FAILED:
            raise InvalidTransitionError(plan.status.value, PlanStatus.PENDING.value)
        fields = {
            "retry_count": 0,
            "error_message": None,
            "due_at": now,
            "claimed_by": None,
            "claimed_at": None,
            "actual_execution_time": None,
        }
        if not self._transition(plan, PlanStatus.PENDING, now, fields=fields):
            current = self._require(plan_id)
            raise InvalidTransitionError(current.status.value, PlanStatus.PENDING.value)
        logger.info("plan_retry_requested", plan_id=plan_id, task_id=plan.task_id)
        return self._require(plan_id)


__all__ = [
    "PLAN_VALID_TRANSITIONS",
    "PlanStateMachine",
    "validate_plan_transition",
]
