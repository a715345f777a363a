"""
Operations layer for cadence.

Every function takes an :class:`OperationContext` first and returns an
:class:`OperationResult` (or :class:`PagedResult`) instead of raising, so
the CLI and SDK callers share one error model. Mutating functions honour
``ctx.dry_run``.

Usage::

    from cadence.ops import OperationContext, SqliteConnection
    from cadence.ops.database import initialize_database
    from cadence.ops.rules import preview_occurrences
    from cadence.ops.requests import PreviewOccurrencesRequest

    ctx = OperationContext(conn=SqliteConnection(":memory:"))
    initialize_database(ctx)
    result = preview_occurrences(ctx, PreviewOccurrencesRequest(rule={...}, days=14))
"""

from cadence.ops.context import OperationContext
from cadence.ops.result import OperationError, OperationResult, PagedResult
from cadence.ops.sqlite_conn import SqliteConnection

__all__ = [
    "OperationContext",
    "OperationError",
    "OperationResult",
    "PagedResult",
    "SqliteConnection",
]
