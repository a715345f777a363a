"""
CLI: ``cadence scheduler``, run the scheduler loop.
"""

from __future__ import annotations

import asyncio
import json
import time

import typer

from cadence.cli.utils import console, get_connection

app = typer.Typer(no_args_is_help=True)


@app.command("run")
def run(
    database: str | None = typer.Option(None, "--database", "-d"),
    interval: float | None = typer.Option(None, "--interval", help="Seconds between ticks"),
    instance_id: str | None = typer.Option(None, "--id", help="Scheduler instance identifier"),  # noqa: UP007
) -> None:
    """Start the scheduler and deliver due plans until interrupted.

    Example::

        cadence scheduler run --interval 30
    """
    from cadence.core.logging import configure_logging
    from cadence.core.settings import get_settings
    from cadence.scheduling import create_scheduler

    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    if interval is not None:
        settings = settings.model_copy(update={"tick_interval_seconds": interval})

    conn = get_connection(database)
    scheduler = create_scheduler(conn, settings, instance_id=instance_id)
    console.print(
        f"[bold green]Starting cadence scheduler[/bold green] "
        f"(backend={settings.scheduler_backend.value}, interval={settings.tick_interval_seconds}s)"
    )

    try:
        scheduler.start()
        while scheduler.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped by user[/yellow]")
    finally:
        scheduler.stop()
        conn.close()


@app.command("tick")
def tick(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run a single scheduling pass and print what it did."""
    from cadence.core.settings import get_settings
    from cadence.scheduling import create_scheduler

    conn = get_connection(database)
    try:
        scheduler = create_scheduler(conn, get_settings())
        summary = asyncio.run(scheduler.tick())
    finally:
        conn.close()

    if json_out:
        console.print_json(json.dumps(summary.to_dict()))
        return
    console.print("[bold]Tick[/bold]")
    for key, value in summary.to_dict().items():
        console.print(f"  [cyan]{key}[/cyan]: {value}")
