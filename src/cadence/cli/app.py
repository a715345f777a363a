"""
Root Typer application for the cadence CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="cadence",
    help="cadence: calendar-aware recurring reminders.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from cadence import __version__

        typer.echo(f"cadence {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """cadence CLI: rules, plans, holidays and the scheduler loop."""


# ── Sub-command registration ─────────────────────────────────────────────

from cadence.cli.db import app as db_app  # noqa: E402
from cadence.cli.holidays import app as holidays_app  # noqa: E402
from cadence.cli.plans import app as plans_app  # noqa: E402
from cadence.cli.rules import app as rules_app  # noqa: E402
from cadence.cli.scheduler import app as scheduler_app  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(rules_app, name="rules", help="Compile, preview and save rules.")
app.add_typer(plans_app, name="plans", help="Execution plans: upcoming, history, retry, skip.")
app.add_typer(holidays_app, name="holidays", help="Holiday calendar management.")
app.add_typer(scheduler_app, name="scheduler", help="Run the scheduler loop.")
