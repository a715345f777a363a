"""
Structural protocols shared across cadence.

Architecture:
    ::

        protocols.py
        ├── Connection       sync DB protocol (sqlite3 adapter, psycopg, ...)
        ├── Notifier         delivers a rendered message to a destination
        ├── HolidaySource    yields holiday entries for a span of years
        └── TaskDirectory    resolves task ids to delivery targets

    The engine depends on these shapes only; concrete implementations
    live in ``cadence.ops.sqlite_conn``, ``cadence.scheduling.notifier``,
    ``cadence.rules.calendar`` and ``cadence.rules.repository``.

Tags:
    protocol, connection, notifier, calendar, cadence, contracts
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cadence.rules.models import HolidayEntry, TaskTarget
    from cadence.scheduling.models import DeliveryResult


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous connection interface for database operations.

    ::

        execute(sql, params)   → Execute single statement (returns cursor)
        executemany(sql, list) → Execute for multiple params
        fetchone() / fetchall()→ Rows from the last query
        commit() / rollback()  → Transaction control
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        ...

    def fetchone(self) -> Any:
        ...

    def fetchall(self) -> list:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


@runtime_checkable
class Notifier(Protocol):
    """
    Message delivery channel.

    ``send`` may be a plain function or a coroutine function. The scheduler
    awaits coroutines directly and runs plain calls in a worker thread,
    bounding both by the notifier timeout. Delivery problems are reported
    through ``DeliveryResult.ok=False`` or by raising ``NotifierFailure``.
    """

    def send(
        self, destination: str, message: str
    ) -> DeliveryResult | Awaitable[DeliveryResult]:
        ...


@runtime_checkable
class HolidaySource(Protocol):
    """Supplies holiday and adjusted-workday entries for whole years."""

    def load(self, start_year: int, end_year: int) -> list[HolidayEntry]:
        ...


@runtime_checkable
class TaskDirectory(Protocol):
    """Resolves a task id to the slice of the task the scheduler needs."""

    def get_target(self, task_id: str) -> TaskTarget | None:
        ...


__all__ = [
    "Connection",
    "HolidaySource",
    "Notifier",
    "TaskDirectory",
]
