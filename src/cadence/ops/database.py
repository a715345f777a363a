"""
Database operations.

Thin wrappers around :mod:`cadence.core.schema`: idempotent table creation
(optionally seeding the built-in holiday calendar) and row counts.
"""

from __future__ import annotations

from cadence.core.logging import get_logger
from cadence.core.schema import CADENCE_TABLES, create_tables
from cadence.ops.context import OperationContext
from cadence.ops.requests import DatabaseInitRequest
from cadence.ops.responses import DatabaseInitResult
from cadence.ops.result import OperationResult, fail_from_error, start_timer
from cadence.rules.calendar import StaticHolidaySource
from cadence.rules.repository import SqlHolidayCalendar

logger = get_logger(__name__)


def initialize_database(
    ctx: OperationContext,
    request: DatabaseInitRequest | None = None,
) -> OperationResult[DatabaseInitResult]:
    """Create all cadence tables (idempotent).

    With ``seed_holidays`` the built-in calendar is stored for every
    configured ``holiday_years`` entry that has no stored data yet.
    """
    request = request or DatabaseInitRequest()
    timer = start_timer()
    tables = sorted(CADENCE_TABLES.values())

    if ctx.dry_run:
        return OperationResult.ok(
            DatabaseInitResult(tables_created=tables, dry_run=True),
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        create_tables(ctx.conn)
        loaded = 0
        if request.seed_holidays:
            store = SqlHolidayCalendar(ctx.conn, ctx.dialect)
            source = StaticHolidaySource()
            stored_years = store.years
            for year in sorted(set(ctx.settings.holiday_years)):
                if year in stored_years or year not in source.years:
                    continue
                loaded += store.save_entries(source.load(year, year))
        logger.info("database_initialized", tables=len(tables), holidays_loaded=loaded)
        return OperationResult.ok(
            DatabaseInitResult(tables_created=tables, holidays_loaded=loaded),
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return fail_from_error(exc, "create tables", elapsed_ms=timer.elapsed_ms)


def get_table_counts(ctx: OperationContext) -> OperationResult[dict[str, int]]:
    """Row count per cadence table."""
    timer = start_timer()
    try:
        counts: dict[str, int] = {}
        for table in sorted(CADENCE_TABLES.values()):
            cursor = ctx.conn.execute(f"SELECT COUNT(*) FROM {table}")
            row = cursor.fetchone()
            counts[table] = int(row[0]) if row else 0
        return OperationResult.ok(counts, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return fail_from_error(exc, "count rows", elapsed_ms=timer.elapsed_ms)
