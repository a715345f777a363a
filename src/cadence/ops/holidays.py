"""
Holiday calendar operations.

The stored calendar (``cadence_holidays``) is what rule evaluation reads.
``load_holidays`` fills it from the built-in statutory source;
``add_holiday`` / ``remove_holiday`` manage custom days off. Calendar
edits do not touch existing plans: regenerate the affected tasks to apply
them.
"""

from __future__ import annotations

from datetime import timedelta

from cadence.core.errors import NotFoundError
from cadence.core.logging import get_logger
from cadence.ops.context import OperationContext
from cadence.ops.requests import (
    CountWorkdaysRequest,
    HolidayRequest,
    ListHolidaysRequest,
    LoadHolidaysRequest,
    NextWorkdayRequest,
)
from cadence.ops.responses import HolidayLoadResult, HolidaySummary, NextWorkday, WorkdayCount
from cadence.ops.result import OperationResult, PagedResult, fail_from_error, start_timer
from cadence.rules.calendar import StaticHolidaySource
from cadence.rules.models import HolidayEntry
from cadence.rules.repository import SqlHolidayCalendar

logger = get_logger(__name__)

REGENERATE_HINT = "Existing plans are unchanged; regenerate affected tasks to apply."


def _store(ctx: OperationContext) -> SqlHolidayCalendar:
    return SqlHolidayCalendar(ctx.conn, ctx.dialect)


def load_holidays(
    ctx: OperationContext,
    request: LoadHolidaysRequest,
) -> OperationResult[HolidayLoadResult]:
    """Store the built-in holidays and adjusted workdays for a span of years."""
    timer = start_timer()
    end_year = request.end_year or request.start_year
    if end_year < request.start_year:
        return OperationResult.fail(
            "VALIDATION_FAILED",
            f"end_year {end_year} is before start_year {request.start_year}",
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        source = StaticHolidaySource()
        missing = [y for y in range(request.start_year, end_year + 1) if y not in source.years]
        entries = source.load(request.start_year, end_year)
        loaded = len(entries) if ctx.dry_run else _store(ctx).save_entries(entries)
        logger.info(
            "holidays_loaded",
            start_year=request.start_year,
            end_year=end_year,
            loaded=loaded,
            missing_years=missing,
            dry_run=ctx.dry_run,
        )
        warnings = [f"No built-in holiday data for {year}" for year in missing]
        return OperationResult.ok(
            HolidayLoadResult(request.start_year, end_year, loaded, missing),
            warnings=warnings,
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return fail_from_error(exc, "load holidays", elapsed_ms=timer.elapsed_ms)


def list_holidays(
    ctx: OperationContext,
    request: ListHolidaysRequest,
) -> PagedResult[HolidaySummary]:
    """Stored entries for a year (or one month of it), in date order."""
    timer = start_timer()
    try:
        entries = _store(ctx).load(request.year, request.year)
        if request.month is not None:
            entries = [e for e in entries if e.day.month == request.month]
        if not request.include_workdays:
            entries = [e for e in entries if e.is_holiday]
        items = [HolidaySummary.from_entry(e) for e in entries]
        return PagedResult.from_items(
            items, total=len(items), limit=max(len(items), 1), elapsed_ms=timer.elapsed_ms
        )
    except Exception as exc:
        failed = fail_from_error(exc, "list holidays", elapsed_ms=timer.elapsed_ms)
        return PagedResult(success=False, error=failed.error, elapsed_ms=failed.elapsed_ms)


def add_holiday(ctx: OperationContext, request: HolidayRequest) -> OperationResult[HolidaySummary]:
    """Mark a date as a custom holiday."""
    timer = start_timer()
    try:
        store = _store(ctx)
        if ctx.dry_run:
            entry = HolidayEntry(day=request.day, name=request.name or None, source="custom")
        else:
            entry = store.add_custom(request.day, request.name)
        return OperationResult.ok(
            HolidaySummary.from_entry(entry),
            warnings=[REGENERATE_HINT],
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return fail_from_error(exc, "add holiday", elapsed_ms=timer.elapsed_ms)


def remove_holiday(ctx: OperationContext, request: HolidayRequest) -> OperationResult[str]:
    """Delete the stored entry for a date."""
    timer = start_timer()
    try:
        store = _store(ctx)
        exists = any(e.day == request.day for e in store.load(request.day.year, request.day.year))
        if not exists:
            raise NotFoundError(f"No holiday entry for {request.day.isoformat()}")
        if not ctx.dry_run:
            store.remove(request.day)
        return OperationResult.ok(
            request.day.isoformat(),
            warnings=[REGENERATE_HINT],
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return fail_from_error(exc, "remove holiday", elapsed_ms=timer.elapsed_ms)


def count_workdays(ctx: OperationContext, request: CountWorkdaysRequest) -> OperationResult[WorkdayCount]:
    """Workdays in ``[start, end]`` under the stored calendar."""
    timer = start_timer()
    try:
        if request.start > request.end:
            raise ValueError(f"start {request.start} is after end {request.end}")
        calendar = _store(ctx).build_calendar(request.start.year, request.end.year)
        count = calendar.count_workdays(request.start, request.end)
        return OperationResult.ok(
            WorkdayCount(request.start, request.end, count), elapsed_ms=timer.elapsed_ms
        )
    except Exception as exc:
        return fail_from_error(exc, "count workdays", elapsed_ms=timer.elapsed_ms)


def next_workday(ctx: OperationContext, request: NextWorkdayRequest) -> OperationResult[NextWorkday]:
    """First workday strictly after ``after`` (``None`` past ``max_days``)."""
    timer = start_timer()
    try:
        horizon = request.after + timedelta(days=request.max_days)
        calendar = _store(ctx).build_calendar(request.after.year, horizon.year)
        found = calendar.next_workday(request.after, max_days=request.max_days)
        return OperationResult.ok(NextWorkday(request.after, found), elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return fail_from_error(exc, "find next workday", elapsed_ms=timer.elapsed_ms)
