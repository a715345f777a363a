"""
Shared pytest fixtures for cadence tests.

This module provides:
- An in-memory SQLite connection with the cadence schema applied
- Settings isolated from the environment
- A pinned civil clock (2024-09-02 08:00, a Monday)
- The built-in 2024-2025 holiday calendar
- Operation contexts, regular and dry-run

Usage:
    Fixtures are auto-discovered by pytest; request them by name.

    def test_something(ctx, clock):
        ...
"""

from __future__ import annotations

import os
from collections.abc import Generator
from datetime import datetime
from pathlib import Path

import pytest

from cadence.core.schema import create_tables
from cadence.core.settings import CadenceSettings, NotifierType, RetryBackoff, clear_settings_cache
from cadence.ops.context import OperationContext
from cadence.ops.sqlite_conn import SqliteConnection
from cadence.rules.calendar import HolidayCalendar, StaticHolidaySource
from cadence.rules.compiler import RuleCompiler
from cadence.rules.repository import SqlHolidayCalendar, TaskTargetRepository
from cadence.scheduling.repository import PlanRepository
from tests._support import FakeClock

# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests: ``cli`` directory → integration, everything else → unit."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if test_path.parts and test_path.parts[0] == "cli":
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep CADENCE_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("CADENCE_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture()
def settings() -> CadenceSettings:
    return CadenceSettings(
        _env_file=None,
        holiday_years=[2024, 2025],
        horizon_days=30,
        max_retries=3,
        retry_backoff=RetryBackoff.CONSTANT,
        retry_base_delay_seconds=60,
        notifier=NotifierType.LOGGING,
    )


# =============================================================================
# Database
# =============================================================================


@pytest.fixture()
def conn() -> Generator[SqliteConnection, None, None]:
    """In-memory SQLite connection with all cadence tables."""
    connection = SqliteConnection(":memory:")
    create_tables(connection)
    yield connection
    connection.close()


@pytest.fixture()
def plans(conn: SqliteConnection) -> PlanRepository:
    return PlanRepository(conn)


@pytest.fixture()
def targets(conn: SqliteConnection) -> TaskTargetRepository:
    return TaskTargetRepository(conn)


@pytest.fixture()
def stored_holidays(conn: SqliteConnection) -> SqlHolidayCalendar:
    """Holiday store seeded with the built-in 2024-2025 calendar."""
    store = SqlHolidayCalendar(conn)
    store.save_entries(StaticHolidaySource().load(2024, 2025))
    return store


# =============================================================================
# Rules
# =============================================================================


@pytest.fixture()
def compiler() -> RuleCompiler:
    return RuleCompiler()


@pytest.fixture()
def calendar() -> HolidayCalendar:
    """Built-in CN calendar for 2024-2025."""
    return HolidayCalendar.from_source(StaticHolidaySource(), 2024, 2025)


# =============================================================================
# Clock and operation contexts
# =============================================================================


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 9, 2, 8, 0))


@pytest.fixture()
def ctx(conn: SqliteConnection, settings: CadenceSettings, clock: FakeClock) -> OperationContext:
    """OperationContext on the in-memory database with the pinned clock."""
    return OperationContext(conn=conn, settings=settings, clock=clock, caller="test")


@pytest.fixture()
def dry_ctx(conn: SqliteConnection, settings: CadenceSettings, clock: FakeClock) -> OperationContext:
    """OperationContext with dry_run=True."""
    return OperationContext(conn=conn, settings=settings, clock=clock, caller="test", dry_run=True)
