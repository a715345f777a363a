"""
CLI utility helpers: output formatting, rule parsing and connection management.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from cadence.core.settings import get_settings
from cadence.ops.context import OperationContext
from cadence.ops.result import OperationResult, PagedResult
from cadence.ops.sqlite_conn import SqliteConnection

console = Console()
err_console = Console(stderr=True)


# ── Connection helper ────────────────────────────────────────────────────


def get_connection(database: str | None = None) -> SqliteConnection:
    """Open a database connection. Defaults to ``settings.database_path``."""
    return SqliteConnection(database or get_settings().database_path)


def make_context(
    database: str | None = None,
    *,
    dry_run: bool = False,
) -> tuple[OperationContext, SqliteConnection]:
    """Create an ``OperationContext`` + connection pair for CLI commands."""
    conn = get_connection(database)
    ctx = OperationContext(conn=conn, caller="cli", dry_run=dry_run)
    return ctx, conn


# ── Input helpers ────────────────────────────────────────────────────────


def load_rule(rule: str | None, rule_file: Path | None) -> dict[str, Any]:
    """Parse a rule given inline as JSON or as a path to a JSON file."""
    if rule_file is not None:
        text = rule_file.read_text(encoding="utf-8")
    elif rule:
        text = rule
    else:
        err_console.print("[bold red]Error[/bold red]: pass --rule or --file")
        raise typer.Exit(code=2)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        err_console.print(f"[bold red]Error[/bold red]: rule is not valid JSON ({exc})")
        raise typer.Exit(code=2) from exc
    if not isinstance(parsed, dict):
        err_console.print("[bold red]Error[/bold red]: rule must be a JSON object")
        raise typer.Exit(code=2)
    return parsed


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Plain dict for a response object, dataclass or mapping."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    return obj if isinstance(obj, dict) else {"value": str(obj)}


def _print_json(payload: dict[str, Any]) -> None:
    console.print_json(json.dumps(payload, default=str, ensure_ascii=False))


def _report(result: OperationResult) -> None:
    """Print warnings, or the error and exit 1 when the result failed."""
    if result.success:
        for warning in result.warnings:
            err_console.print(f"[yellow]Warning[/yellow]: {warning}")
        return
    error = result.error
    if error is None:
        err_console.print("[bold red]Error[/bold red]: operation failed")
    else:
        err_console.print(f"[bold red]Error[/bold red] ({error.code}): {error.message}")
        for violation in error.details.get("errors", []):
            err_console.print(f"  [red]-[/red] {violation}")
    raise typer.Exit(code=1)


def output_result(result: OperationResult, *, as_json: bool = False, title: str = "") -> None:
    """Print a single-object result as key/value lines, or JSON."""
    if as_json and result.success:
        _print_json(result.to_dict())
        return
    _report(result)
    if isinstance(result.data, list):
        _print_rows(result.data, title=title)
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for key, value in _to_dict(result.data).items():
        if isinstance(value, list) and value and isinstance(value[0], dict):
            value = f"{len(value)} item(s)"
        console.print(f"  [cyan]{key}[/cyan]: {value}")


def output_paged(
    result: PagedResult,
    *,
    as_json: bool = False,
    title: str = "",
    columns: list[str] | None = None,
) -> None:
    """Print one page of a listing as a table with a position footer, or JSON."""
    items = result.data or []
    if as_json and result.success:
        _print_json({
            "items": [_to_dict(item) for item in items],
            "total": result.total,
            "limit": result.limit,
            "offset": result.offset,
            "has_more": result.has_more,
        })
        return
    _report(result)
    if _print_rows(items, title=title, columns=columns):
        console.print(f"\n[dim]Showing {len(items)} of {result.total} (offset {result.offset})[/dim]")


def _print_rows(items: list, *, title: str = "", columns: list[str] | None = None) -> bool:
    if not items:
        console.print("[dim]No items.[/dim]")
        return False
    rows = [_to_dict(item) for item in items]
    names = columns or list(rows[0])
    table = Table(*names, title=title or None, pad_edge=False)
    for row in rows:
        table.add_row(*(str(row[name]) if row.get(name) is not None else "" for name in names))
    console.print(table)
    return True
