"""
CLI: ``cadence rules``, compile, preview, save and regenerate.

Rules are passed as JSON, inline (``--rule``) or from a file (``--file``)::

    cadence rules preview --rule '{"rule_type": "by_day", "day_mode": {"type": "last_workday"}, "execution_times": ["09:00"]}'
    cadence rules save standup --file standup.json --destination https://hooks.example/abc
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import typer

from cadence.cli.utils import load_rule, make_context, output_result

app = typer.Typer(no_args_is_help=True)

RULE_OPTION = typer.Option(None, "--rule", "-r", help="Rule as a JSON object")
FILE_OPTION = typer.Option(None, "--file", "-f", exists=True, dir_okay=False, help="Rule JSON file")


@app.command("compile")
def compile_cmd(
    rule: str | None = RULE_OPTION,
    rule_file: Path | None = FILE_OPTION,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Validate a rule and print its canonical form."""
    from cadence.ops.requests import CompileRuleRequest
    from cadence.ops.rules import compile_rule

    ctx, _ = make_context(":memory:")
    result = compile_rule(ctx, CompileRuleRequest(rule=load_rule(rule, rule_file)))
    output_result(result, as_json=json_out, title="Compiled Rule")


@app.command("preview")
def preview(
    rule: str | None = RULE_OPTION,
    rule_file: Path | None = FILE_OPTION,
    start: datetime | None = typer.Option(None, "--start", formats=["%Y-%m-%d"]),
    end: datetime | None = typer.Option(None, "--end", formats=["%Y-%m-%d"]),
    days: int | None = typer.Option(None, "--days", help="Window length when --end is omitted"),
    limit: int | None = typer.Option(None, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the dates and times a rule fires at, without writing anything."""
    from cadence.ops.requests import PreviewOccurrencesRequest
    from cadence.ops.rules import preview_occurrences

    ctx, _ = make_context(database)
    request = PreviewOccurrencesRequest(
        rule=load_rule(rule, rule_file),
        start=start.date() if start else None,
        end=end.date() if end else None,
        days=days,
        limit=limit,
    )
    result = preview_occurrences(ctx, request)
    output_result(result, as_json=json_out, title="Occurrences")


@app.command("save")
def save(
    task_id: str = typer.Argument(..., help="Task ID"),
    rule: str | None = RULE_OPTION,
    rule_file: Path | None = FILE_OPTION,
    name: str = typer.Option("", "--name", help="Task name used in messages"),
    destination: str = typer.Option("", "--destination", help="Webhook URL"),
    description: str = typer.Option("", "--description"),
    template: str | None = typer.Option(None, "--template", help="Message template"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Store a task's rule and target, then regenerate its plans."""
    from cadence.ops.requests import SaveRuleRequest
    from cadence.ops.rules import save_rule

    ctx, _ = make_context(database, dry_run=dry_run)
    request = SaveRuleRequest(
        task_id=task_id,
        rule=load_rule(rule, rule_file),
        name=name,
        destination=destination,
        description=description,
        message_template=template,
    )
    result = save_rule(ctx, request)
    output_result(result, as_json=json_out, title=f"Saved: {task_id}")


@app.command("regenerate")
def regenerate(
    task_id: str = typer.Argument(..., help="Task ID"),
    start: datetime | None = typer.Option(None, "--start", formats=["%Y-%m-%d"]),
    end: datetime | None = typer.Option(None, "--end", formats=["%Y-%m-%d"]),
    include_past: bool = typer.Option(False, "--include-past", help="Also create slots before now"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Reconcile a task's plans with its stored rule."""
    from cadence.ops.requests import RegeneratePlansRequest
    from cadence.ops.rules import regenerate_plans

    ctx, _ = make_context(database, dry_run=dry_run)
    request = RegeneratePlansRequest(
        task_id=task_id,
        start=start.date() if start else None,
        end=end.date() if end else None,
        include_past=include_past,
    )
    result = regenerate_plans(ctx, request)
    output_result(result, as_json=json_out, title=f"Regenerated: {task_id}")


@app.command("delete")
def delete(
    task_id: str = typer.Argument(..., help="Task ID"),
    purge: bool = typer.Option(False, "--purge", help="Also delete the plan history"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Cancel a task's pending plans and drop its rule."""
    from cadence.ops.requests import DeleteTaskRequest
    from cadence.ops.rules import delete_task

    ctx, _ = make_context(database, dry_run=dry_run)
    result = delete_task(ctx, DeleteTaskRequest(task_id=task_id, purge_history=purge))
    output_result(result, as_json=json_out, title=f"Deleted: {task_id}")
