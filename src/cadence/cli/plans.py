"""
CLI: ``cadence plans``, list and act on execution plans.
"""

from __future__ import annotations

from datetime import datetime

import typer

from cadence.cli.utils import make_context, output_paged, output_result

app = typer.Typer(no_args_is_help=True)

PLAN_COLUMNS = ["id", "task_id", "scheduled_date", "scheduled_time", "status", "retry_count", "error_message"]


def _statuses(values: list[str] | None) -> tuple:
    from cadence.scheduling.models import PlanStatus

    try:
        return tuple(PlanStatus(v) for v in values or [])
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--status") from exc


@app.command("upcoming")
def upcoming(
    task_id: str | None = typer.Option(None, "--task", "-t"),
    start: datetime | None = typer.Option(None, "--start", formats=["%Y-%m-%d"]),
    end: datetime | None = typer.Option(None, "--end", formats=["%Y-%m-%d"]),
    status: list[str] | None = typer.Option(None, "--status", "-s"),
    limit: int = typer.Option(50, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Plans about to fire, soonest first."""
    from cadence.ops.plans import list_upcoming
    from cadence.ops.requests import ListPlansRequest

    ctx, _ = make_context(database)
    request = ListPlansRequest(
        task_id=task_id,
        start=start.date() if start else None,
        end=end.date() if end else None,
        statuses=_statuses(status),
        limit=limit,
        offset=offset,
    )
    output_paged(list_upcoming(ctx, request), as_json=json_out, title="Upcoming", columns=PLAN_COLUMNS)


@app.command("history")
def history(
    task_id: str | None = typer.Option(None, "--task", "-t"),
    start: datetime | None = typer.Option(None, "--start", formats=["%Y-%m-%d"]),
    end: datetime | None = typer.Option(None, "--end", formats=["%Y-%m-%d"]),
    status: list[str] | None = typer.Option(None, "--status", "-s"),
    limit: int = typer.Option(50, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Plans that already ran or were skipped, newest first."""
    from cadence.ops.plans import list_history
    from cadence.ops.requests import ListPlansRequest

    ctx, _ = make_context(database)
    request = ListPlansRequest(
        task_id=task_id,
        start=start.date() if start else None,
        end=end.date() if end else None,
        statuses=_statuses(status),
        limit=limit,
        offset=offset,
    )
    output_paged(list_history(ctx, request), as_json=json_out, title="History", columns=PLAN_COLUMNS)


@app.command("retry")
def retry(
    plan_id: str = typer.Argument(..., help="Plan ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Re-arm a failed plan to run now."""
    from cadence.ops.plans import retry_plan
    from cadence.ops.requests import PlanActionRequest

    ctx, _ = make_context(database, dry_run=dry_run)
    result = retry_plan(ctx, PlanActionRequest(plan_id=plan_id))
    output_result(result, as_json=json_out, title=f"Retried: {plan_id}")


@app.command("skip")
def skip(
    plan_id: str = typer.Argument(..., help="Plan ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Mark a pending plan skipped."""
    from cadence.ops.plans import skip_plan
    from cadence.ops.requests import PlanActionRequest

    ctx, _ = make_context(database, dry_run=dry_run)
    result = skip_plan(ctx, PlanActionRequest(plan_id=plan_id))
    output_result(result, as_json=json_out, title=f"Skipped: {plan_id}")
