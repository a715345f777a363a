"""
CLI: ``cadence db``, database management commands.
"""

from __future__ import annotations

import typer

from cadence.cli.utils import make_context, output_result

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database path"),
    seed_holidays: bool = typer.Option(
        True, "--seed-holidays/--no-seed-holidays", help="Load the built-in holiday calendar"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without changes"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Initialise database schema (create tables)."""
    from cadence.ops.database import initialize_database
    from cadence.ops.requests import DatabaseInitRequest

    ctx, _conn = make_context(database, dry_run=dry_run)
    result = initialize_database(ctx, DatabaseInitRequest(seed_holidays=seed_holidays))
    output_result(result, as_json=json_out, title="Database Init")


@app.command()
def tables(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show row counts for all cadence tables."""
    from cadence.ops.database import get_table_counts

    ctx, _conn = make_context(database)
    result = get_table_counts(ctx)
    output_result(result, as_json=json_out, title="Table Counts")
