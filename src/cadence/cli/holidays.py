"""
CLI: ``cadence holidays``, holiday calendar management.
"""

from __future__ import annotations

from datetime import datetime

import typer

from cadence.cli.utils import make_context, output_paged, output_result

app = typer.Typer(no_args_is_help=True)

DATE_FORMATS = ["%Y-%m-%d"]


@app.command("load")
def load(
    start_year: int = typer.Argument(..., help="First year"),
    end_year: int | None = typer.Argument(None, help="Last year (defaults to the first)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Store the built-in statutory holidays for a span of years."""
    from cadence.ops.holidays import load_holidays
    from cadence.ops.requests import LoadHolidaysRequest

    ctx, _ = make_context(database, dry_run=dry_run)
    result = load_holidays(ctx, LoadHolidaysRequest(start_year=start_year, end_year=end_year))
    output_result(result, as_json=json_out, title="Holidays Loaded")


@app.command("list")
def list_cmd(
    year: int = typer.Argument(..., help="Year"),
    month: int | None = typer.Option(None, "--month", "-m", min=1, max=12),
    holidays_only: bool = typer.Option(False, "--holidays-only", help="Hide adjusted workdays"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List stored calendar entries."""
    from cadence.ops.holidays import list_holidays
    from cadence.ops.requests import ListHolidaysRequest

    ctx, _ = make_context(database)
    request = ListHolidaysRequest(year=year, month=month, include_workdays=not holidays_only)
    output_paged(list_holidays(ctx, request), as_json=json_out, title=f"Calendar {year}")


@app.command("add")
def add(
    day: datetime = typer.Argument(..., formats=DATE_FORMATS, help="Date (YYYY-MM-DD)"),
    name: str = typer.Option("", "--name"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Add a custom holiday."""
    from cadence.ops.holidays import add_holiday
    from cadence.ops.requests import HolidayRequest

    ctx, _ = make_context(database, dry_run=dry_run)
    result = add_holiday(ctx, HolidayRequest(day=day.date(), name=name))
    output_result(result, as_json=json_out, title="Holiday Added")


@app.command("remove")
def remove(
    day: datetime = typer.Argument(..., formats=DATE_FORMATS, help="Date (YYYY-MM-DD)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Remove the stored entry for a date."""
    from cadence.ops.holidays import remove_holiday
    from cadence.ops.requests import HolidayRequest

    ctx, _ = make_context(database, dry_run=dry_run)
    result = remove_holiday(ctx, HolidayRequest(day=day.date()))
    output_result(result, as_json=json_out, title="Holiday Removed")


@app.command("workdays")
def workdays(
    start: datetime = typer.Argument(..., formats=DATE_FORMATS),
    end: datetime = typer.Argument(..., formats=DATE_FORMATS),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Count workdays in a closed date range."""
    from cadence.ops.holidays import count_workdays
    from cadence.ops.requests import CountWorkdaysRequest

    ctx, _ = make_context(database)
    result = count_workdays(ctx, CountWorkdaysRequest(start=start.date(), end=end.date()))
    output_result(result, as_json=json_out, title="Workdays")


@app.command("next-workday")
def next_workday_cmd(
    after: datetime = typer.Argument(..., formats=DATE_FORMATS),
    max_days: int = typer.Option(30, "--max-days"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """First workday after a date."""
    from cadence.ops.holidays import next_workday
    from cadence.ops.requests import NextWorkdayRequest

    ctx, _ = make_context(database)
    result = next_workday(ctx, NextWorkdayRequest(after=after.date(), max_days=max_days))
    output_result(result, as_json=json_out, title="Next Workday")
