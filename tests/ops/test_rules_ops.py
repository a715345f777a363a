"""Tests for cadence.ops.rules."""

from dataclasses import replace
from datetime import date, datetime, time

from cadence.ops.holidays import add_holiday
from cadence.ops.requests import (
    CompileRuleRequest,
    DeleteTaskRequest,
    HolidayRequest,
    PreviewOccurrencesRequest,
    RegeneratePlansRequest,
    SaveRuleRequest,
)
from cadence.ops.rules import (
    compile_rule,
    delete_task,
    preview_occurrences,
    regenerate_plans,
    save_rule,
)
from cadence.rules.repository import RuleRepository
from cadence.scheduling.models import PlanStatus
from tests._support import HOOK, by_day, by_week

SEPT_MONDAYS = [date(2024, 9, d) for d in (2, 9, 23, 30)]


def scheduled_dates(plans, task_id="report", status=PlanStatus.PENDING):
    return [p.scheduled_date for p in plans.list_plans(task_id=task_id, statuses=[status])]


class TestCompileRule:
    def test_valid(self, ctx):
        result = compile_rule(ctx, CompileRuleRequest(rule=by_day("last_workday")))
        assert result.success
        assert result.data.rule_type == "by_day"
        assert result.data.complexity == 50
        assert result.data.rule["day_mode"] == {"type": "last_workday"}

    def test_invalid_lists_every_error(self, ctx):
        raw = by_day("specific_days", days=[0], months=[13])
        result = compile_rule(ctx, CompileRuleRequest(rule=raw))
        assert not result.success
        assert result.error.code == "VALIDATION_FAILED"
        assert len(result.error.details["errors"]) == 2

    def test_complexity_limit_from_settings(self, ctx):
        ctx.settings.max_rule_complexity = 20
        result = compile_rule(ctx, CompileRuleRequest(rule=by_day("last_day")))
        assert result.error.code == "VALIDATION_FAILED"


class TestPreviewOccurrences:
    def test_explicit_window(self, ctx):
        request = PreviewOccurrencesRequest(
            rule=by_day("last_workday", times=["09:00", "18:00"]),
            start=date(2024, 9, 1),
            end=date(2024, 10, 31),
        )
        result = preview_occurrences(ctx, request)
        assert [(s.day, s.at) for s in result.data] == [
            (date(2024, 9, 30), time(9, 0)),
            (date(2024, 9, 30), time(18, 0)),
            (date(2024, 10, 31), time(9, 0)),
            (date(2024, 10, 31), time(18, 0)),
        ]
        assert result.metadata["dates"] == 2

    def test_default_window_is_horizon_from_today(self, ctx):
        result = preview_occurrences(ctx, PreviewOccurrencesRequest(rule=by_day("nth_workday", nth=1)))
        assert [s.day for s in result.data] == [date(2024, 9, 2)]
        assert result.metadata["window_start"] == "2024-09-02"
        assert result.metadata["window_end"] == "2024-10-01"

    def test_days_and_limit(self, ctx):
        request = PreviewOccurrencesRequest(rule=by_day("every_day"), days=10, limit=3)
        result = preview_occurrences(ctx, request)
        assert [s.day.day for s in result.data] == [2, 3, 4]
        assert result.metadata["dates"] == 10

    def test_uses_stored_calendar(self, ctx, mondays):
        result = preview_occurrences(ctx, PreviewOccurrencesRequest(rule=mondays, start=date(2024, 9, 1), end=date(2024, 9, 30)))
        assert [s.day for s in result.data] == SEPT_MONDAYS

    def test_preview_writes_nothing(self, ctx, plans, mondays):
        preview_occurrences(ctx, PreviewOccurrencesRequest(rule=mondays))
        assert plans.count_plans() == 0

    def test_reversed_window(self, ctx):
        request = PreviewOccurrencesRequest(rule=by_day("every_day"), start=date(2024, 9, 5), end=date(2024, 9, 1))
        result = preview_occurrences(ctx, request)
        assert result.error.code == "VALIDATION_FAILED"


class TestRegeneratePlans:
    def test_materializes_horizon(self, ctx, plans, mondays):
        result = regenerate_plans(ctx, RegeneratePlansRequest(task_id="report", rule=mondays))
        assert result.success
        assert result.data.created == 4
        assert scheduled_dates(plans) == SEPT_MONDAYS

    def test_idempotent(self, ctx, mondays):
        regenerate_plans(ctx, RegeneratePlansRequest(task_id="report", rule=mondays))
        again = regenerate_plans(ctx, RegeneratePlansRequest(task_id="report", rule=mondays))
        assert (again.data.created, again.data.deleted) == (0, 0)

    def test_uses_stored_rule(self, ctx, saved_task):
        result = regenerate_plans(ctx, RegeneratePlansRequest(task_id="report"))
        assert result.success
        assert result.data.created == 0
        assert len(result.data.plans) == 4

    def test_rule_change_replaces_pending(self, ctx, plans, saved_task):
        fridays = by_week([5], times=["09:00"])
        result = regenerate_plans(ctx, RegeneratePlansRequest(task_id="report", rule=fridays))
        assert (result.data.created, result.data.deleted) == (4, 4)
        assert scheduled_dates(plans) == [date(2024, 9, d) for d in (6, 13, 20, 27)]

    def test_history_survives_rule_change(self, ctx, plans, saved_task):
        first = plans.list_plans(task_id="report")[0]
        plans.compare_and_set(first.id, PlanStatus.PENDING, PlanStatus.SKIPPED)
        result = regenerate_plans(ctx, RegeneratePlansRequest(task_id="report", rule=by_day("last_day")))
        assert result.data.retained == 1
        assert plans.get(first.id).status is PlanStatus.SKIPPED

    def test_holiday_edit_then_regenerate(self, ctx, plans, saved_task):
        warning = add_holiday(ctx, HolidayRequest(day=date(2024, 9, 9), name="office move")).warnings
        assert warning
        regenerate_plans(ctx, RegeneratePlansRequest(task_id="report"))
        assert date(2024, 9, 9) not in scheduled_dates(plans)

    def test_past_slots_frozen_unless_included(self, ctx, plans):
        daily = by_day("every_day", times=["07:00"])
        request = RegeneratePlansRequest(task_id="early", rule=daily, start=date(2024, 9, 2), end=date(2024, 9, 3))
        assert regenerate_plans(ctx, request).data.created == 1

        assert regenerate_plans(ctx, replace(request, include_past=True)).data.created == 1
        assert plans.count_plans(task_id="early") == 2

    def test_dry_run(self, dry_ctx, plans, mondays):
        result = regenerate_plans(dry_ctx, RegeneratePlansRequest(task_id="report", rule=mondays))
        assert result.data.created == 4
        assert result.metadata == {"dry_run": True}
        assert plans.count_plans() == 0

    def test_unknown_task(self, ctx):
        result = regenerate_plans(ctx, RegeneratePlansRequest(task_id="ghost"))
        assert result.error.code == "NOT_FOUND"

    def test_task_id_required(self, ctx, mondays):
        result = regenerate_plans(ctx, RegeneratePlansRequest(task_id="", rule=mondays))
        assert result.error.code == "VALIDATION_FAILED"

    def test_invalid_rule(self, ctx):
        result = regenerate_plans(ctx, RegeneratePlansRequest(task_id="report", rule={"rule_type": "by_day"}))
        assert result.error.code == "VALIDATION_FAILED"
        assert result.error.details["errors"]


class TestSaveRule:
    def test_stores_rule_target_and_plans(self, ctx, conn, targets, plans, saved_task):
        assert saved_task.rule.rule_type == "by_week"
        assert saved_task.regeneration.created == 4
        assert RuleRepository(conn).get("report") is not None
        target = targets.get_target("report")
        assert (target.name, target.destination, target.active) == ("Weekly report", HOOK, True)
        assert plans.count_plans(task_id="report") == 4

    def test_resave_keeps_target_fields(self, ctx, targets, saved_task):
        result = save_rule(ctx, SaveRuleRequest(task_id="report", rule=by_day("last_day")))
        assert result.success
        target = targets.get_target("report")
        assert target.destination == HOOK
        assert target.name == "Weekly report"

    def test_invalid_rule_stores_nothing(self, ctx, conn):
        result = save_rule(ctx, SaveRuleRequest(task_id="report", rule={"rule_type": "nope"}))
        assert result.error.code == "VALIDATION_FAILED"
        assert RuleRepository(conn).get("report") is None

    def test_dry_run(self, dry_ctx, conn, mondays):
        result = save_rule(dry_ctx, SaveRuleRequest(task_id="report", rule=mondays))
        assert result.success
        assert result.data.regeneration is None
        assert RuleRepository(conn).get("report") is None

    def test_task_id_required(self, ctx, mondays):
        assert save_rule(ctx, SaveRuleRequest(task_id="", rule=mondays)).error.code == "VALIDATION_FAILED"


class TestDeleteTask:
    def test_cancels_and_deactivates(self, ctx, conn, plans, targets, saved_task):
        result = delete_task(ctx, DeleteTaskRequest(task_id="report"))
        assert result.success
        assert result.data.cancelled == 4
        assert result.data.rule_deleted and result.data.target_deactivated
        assert targets.get_target("report").active is False
        assert RuleRepository(conn).get("report") is None
        assert plans.due(datetime(2024, 12, 31), 10) == []

    def test_resave_after_delete_fires_again(self, ctx, targets, plans, mondays, saved_task):
        delete_task(ctx, DeleteTaskRequest(task_id="report"))
        result = save_rule(ctx, SaveRuleRequest(task_id="report", rule=mondays))
        assert result.success
        assert (result.data.regeneration.created, result.data.regeneration.deleted) == (4, 4)
        assert targets.get_target("report").active is True
        due = plans.due(datetime(2024, 12, 31), 10)
        assert [p.scheduled_date for p in due] == SEPT_MONDAYS
        assert not any(p.cancelled for p in plans.list_plans(task_id="report"))

    def test_purge_history(self, ctx, plans, saved_task):
        result = delete_task(ctx, DeleteTaskRequest(task_id="report", purge_history=True))
        assert result.data.purged == 4
        assert plans.count_plans(task_id="report") == 0

    def test_dry_run(self, dry_ctx, plans, saved_task):
        result = delete_task(dry_ctx, DeleteTaskRequest(task_id="report"))
        assert result.data.cancelled == 4
        assert plans.due(datetime(2024, 12, 31), 10)

    def test_unknown_task(self, ctx):
        assert delete_task(ctx, DeleteTaskRequest(task_id="ghost")).error.code == "NOT_FOUND"
