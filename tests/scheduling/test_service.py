"""Tests for SchedulerService: claiming, delivery, retries and recovery."""

import asyncio
from datetime import date, datetime, time, timedelta

import pytest

from cadence.core.settings import CadenceSettings, NotifierType
from cadence.rules.models import DateWindow, TaskTarget
from cadence.scheduling import (
    ExecutionPlanMaterializer,
    SchedulerService,
    ThreadSchedulerBackend,
    create_scheduler,
)
from cadence.scheduling.models import DeliveryResult, PlanStatus
from cadence.scheduling.notifier import LoggingNotifier
from cadence.scheduling.retry import ConstantBackoff
from tests._support import HOOK, RecordingNotifier


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_service(plans, targets, clock, notifier):
    def _make(**kwargs):
        options = {
            "clock": clock,
            "retry": ConstantBackoff(max_retries=3, delay=60),
            "instance_id": "scheduler-a",
            "claim_lease_seconds": 300,
        }
        options.update(kwargs)
        return SchedulerService(plans, targets, options.pop("notifier", notifier), **options)

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


class TestDelivery:
    async def test_due_plan_is_delivered_and_completed(self, service, make_plan, target, notifier, plans):
        plan = make_plan()
        summary = await service.tick()

        assert summary.to_dict() == {
            "due": 1, "claimed": 1, "completed": 1, "failed": 0,
            "retried": 0, "conflicts": 0, "recovered": 0,
        }
        assert notifier.calls == [(HOOK, "Daily report\n时间：2024-09-02 07:30")]
        stored = plans.get(plan.id)
        assert stored.status is PlanStatus.COMPLETED
        assert stored.actual_execution_time == datetime(2024, 9, 2, 8, 0)

    async def test_future_plan_untouched(self, service, make_plan, target, notifier, plans):
        plan = make_plan(at=time(9, 0))
        summary = await service.tick()
        assert summary.due == 0
        assert notifier.calls == []
        assert plans.get(plan.id).status is PlanStatus.PENDING

    async def test_cancelled_plan_not_sent(self, service, make_plan, target, notifier, plans):
        make_plan()
        assert service.cancel_task("report") == 1
        await service.tick()
        assert notifier.calls == []

    async def test_completed_plan_not_resent(self, service, make_plan, target, notifier):
        make_plan()
        await service.tick()
        await service.tick()
        assert len(notifier.calls) == 1

    async def test_default_destination(self, make_service, make_plan, targets, notifier):
        targets.upsert(TaskTarget("report", "Daily report", ""))
        service = make_service(default_destination="https://fallback.example.com")
        make_plan()
        await service.tick()
        assert notifier.calls[0][0] == "https://fallback.example.com"

    async def test_sync_notifier(self, make_service, make_plan, target, plans):
        logging_notifier = LoggingNotifier()
        plan = make_plan()
        summary = await make_service(notifier=logging_notifier).tick()
        assert summary.completed == 1
        assert logging_notifier.sent[0][0] == HOOK
        assert plans.get(plan.id).status is PlanStatus.COMPLETED


class TestFailures:
    async def test_retryable_failure_rearms(self, make_service, make_plan, target, plans):
        notifier = RecordingNotifier([DeliveryResult.fail("recording", "HTTP 502")])
        plan = make_plan()
        summary = await make_service(notifier=notifier).tick()

        assert summary.retried == 1
        stored = plans.get(plan.id)
        assert stored.status is PlanStatus.PENDING
        assert stored.retry_count == 1
        assert stored.error_message == "HTTP 502"
        assert stored.due_at == datetime(2024, 9, 2, 8, 1)

    async def test_three_failures_end_in_failed(self, make_service, make_plan, target, plans, clock):
        """max_retries=3: pending, pending, failed; regeneration does not re-arm it."""
        notifier = RecordingNotifier([RuntimeError("boom")] * 3)
        service = make_service(notifier=notifier)
        plan = make_plan()

        statuses = []
        for _ in range(3):
            await service.tick()
            statuses.append(plans.get(plan.id).status)
            clock.advance(minutes=2)

        assert statuses == [PlanStatus.PENDING, PlanStatus.PENDING, PlanStatus.FAILED]
        assert len(notifier.calls) == 3
        assert plans.get(plan.id).retry_count == 3

        day = DateWindow(date(2024, 9, 2), date(2024, 9, 2))
        result = ExecutionPlanMaterializer(plans, clock=clock).materialize(
            "report", [date(2024, 9, 2)], [time(7, 30)], day
        )
        assert result.created == 0
        assert plans.get(plan.id).status is PlanStatus.FAILED

        await service.tick()
        assert len(notifier.calls) == 3

    async def test_non_retryable_result_fails_immediately(self, make_service, make_plan, target, plans):
        notifier = RecordingNotifier([DeliveryResult.fail("recording", "HTTP 404", retryable=False)])
        plan = make_plan()
        summary = await make_service(notifier=notifier).tick()
        assert summary.failed == 1
        assert plans.get(plan.id).status is PlanStatus.FAILED

    async def test_exception_from_notifier_is_retryable(self, make_service, make_plan, target, plans):
        notifier = RecordingNotifier([ConnectionError("refused")])
        plan = make_plan()
        await make_service(notifier=notifier).tick()
        stored = plans.get(plan.id)
        assert stored.status is PlanStatus.PENDING
        assert stored.error_message == "refused"

    async def test_timeout_is_retryable(self, make_service, make_plan, target, plans):
        notifier = RecordingNotifier(delay=1.0)
        plan = make_plan()
        summary = await make_service(notifier=notifier, notifier_timeout_seconds=0.05).tick()
        assert summary.retried == 1
        assert "timed out" in plans.get(plan.id).error_message

    async def test_missing_target_fails_without_sending(self, service, make_plan, notifier, plans):
        plan = make_plan("ghost")
        summary = await service.tick()
        assert summary.failed == 1
        assert notifier.calls == []
        stored = plans.get(plan.id)
        assert stored.status is PlanStatus.FAILED
        assert "ghost" in stored.error_message

    async def test_inactive_target(self, service, make_plan, targets, notifier, plans):
        targets.upsert(TaskTarget("report", "Daily report", HOOK, active=False))
        plan = make_plan()
        await service.tick()
        assert notifier.calls == []
        assert plans.get(plan.id).status is PlanStatus.FAILED

    async def test_no_destination_anywhere(self, service, make_plan, targets, plans):
        targets.upsert(TaskTarget("report", "Daily report", ""))
        plan = make_plan()
        await service.tick()
        assert "no destination" in plans.get(plan.id).error_message

    async def test_one_failure_does_not_block_others(self, service, make_plan, target, notifier, plans):
        good = make_plan("report")
        bad = make_plan("ghost")
        summary = await service.tick()
        assert (summary.completed, summary.failed) == (1, 1)
        assert plans.get(good.id).status is PlanStatus.COMPLETED
        assert plans.get(bad.id).status is PlanStatus.FAILED


class TestConcurrency:
    async def test_two_replicas_deliver_once(self, make_service, make_plan, target, plans):
        """Two schedulers on one database: exactly one claims and sends."""
        first_notifier = RecordingNotifier(delay=0.05)
        second_notifier = RecordingNotifier(delay=0.05)
        first = make_service(notifier=first_notifier, instance_id="scheduler-a")
        second = make_service(notifier=second_notifier, instance_id="scheduler-b")
        plan = make_plan()

        summaries = await asyncio.gather(first.tick(), second.tick())

        assert len(first_notifier.calls) + len(second_notifier.calls) == 1
        assert sum(s.completed for s in summaries) == 1
        assert sum(s.conflicts for s in summaries) == 1
        assert plans.get(plan.id).claimed_by in {"scheduler-a", "scheduler-b"}

    async def test_many_plans_bounded_concurrency(self, make_service, make_plan, target, notifier):
        for minute in range(6):
            make_plan(at=time(7, minute))
        summary = await make_service(max_concurrency=2).tick()
        assert summary.completed == 6
        assert len(notifier.calls) == 6


class TestStaleClaims:
    def _strand(self, plans, plan, claimed_at, retry_count=0):
        plans.compare_and_set(
            plan.id,
            PlanStatus.PENDING,
            PlanStatus.EXECUTING,
            fields={"claimed_by": "dead-worker", "claimed_at": claimed_at, "retry_count": retry_count},
        )

    async def test_expired_claim_is_rearmed(self, service, make_plan, target, plans, notifier):
        plan = make_plan()
        self._strand(plans, plan, datetime(2024, 9, 2, 7, 30))

        summary = await service.tick()

        assert summary.recovered == 1
        stored = plans.get(plan.id)
        assert stored.status is PlanStatus.PENDING
        assert stored.retry_count == 1
        assert stored.error_message == "claim lease expired"
        assert stored.due_at == datetime(2024, 9, 2, 8, 1)
        assert notifier.calls == []

    async def test_fresh_claim_left_alone(self, service, make_plan, target, plans):
        plan = make_plan()
        self._strand(plans, plan, datetime(2024, 9, 2, 7, 58))
        summary = await service.tick()
        assert summary.recovered == 0
        assert plans.get(plan.id).status is PlanStatus.EXECUTING

    async def test_expired_claim_with_no_budget_fails(self, service, make_plan, target, plans):
        plan = make_plan()
        self._strand(plans, plan, datetime(2024, 9, 2, 7, 0), retry_count=2)
        await service.tick()
        assert plans.get(plan.id).status is PlanStatus.FAILED


class TestOperatorActions:
    def test_skip(self, service, make_plan):
        skipped = service.skip(make_plan(at=time(9, 0)).id)
        assert skipped.status is PlanStatus.SKIPPED

    async def test_retry_failed(self, service, make_plan, notifier, plans, targets):
        plan = make_plan()
        await service.tick()
        assert plans.get(plan.id).status is PlanStatus.FAILED

        targets.upsert(TaskTarget("report", "Daily report", HOOK))
        retried = service.retry(plan.id)
        assert retried.status is PlanStatus.PENDING
        await service.tick()
        assert plans.get(plan.id).status is PlanStatus.COMPLETED


class TestLifecycle:
    def test_start_requires_backend(self, service):
        with pytest.raises(RuntimeError, match="timing backend"):
            service.start()

    def test_start_stop_with_thread_backend(self, make_service):
        service = make_service(backend=ThreadSchedulerBackend(), interval_seconds=30)
        service.start()
        try:
            assert service.is_running
            health = service.health()
            assert health.healthy
            assert health.backend["backend"] == "thread"
        finally:
            service.stop()
        assert not service.is_running
        assert not service.health().healthy

    async def test_stats_accumulate(self, service, make_plan, target):
        make_plan()
        await service.tick()
        await service.tick()
        stats = service.get_stats()
        assert stats.tick_count == 2
        assert stats.completed == 1
        assert stats.to_dict()["last_tick"] is not None
        service.reset_stats()
        assert service.get_stats().tick_count == 0


class TestCreateScheduler:
    def test_wiring_from_settings(self, conn):
        settings = CadenceSettings(
            _env_file=None,
            notifier=NotifierType.LOGGING,
            max_concurrency=3,
            batch_size=50,
            claim_lease_seconds=120,
            webhook_url="https://fallback.example.com",
        )
        scheduler = create_scheduler(conn, settings, instance_id="replica-7")
        assert scheduler.instance_id == "replica-7"
        assert isinstance(scheduler.notifier, LoggingNotifier)
        assert isinstance(scheduler.backend, ThreadSchedulerBackend)
        assert scheduler.max_concurrency == 3
        assert scheduler.batch_size == 50
        assert scheduler.claim_lease == timedelta(seconds=120)
        assert scheduler.default_destination == "https://fallback.example.com"
        assert scheduler.lock_manager.instance_id == "replica-7"
