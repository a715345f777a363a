"""Shared plumbing for the SQL repositories.

Rules, targets, holidays and plans are stored through subclasses of
:class:`BaseRepository`. Each one owns a connection and a dialect and
writes its statements with ``self.ph(n)`` so the same SQL text runs on
SQLite (``?``) and PostgreSQL (``%s``).

Rows come back as plain dicts whatever the driver's row type is.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from cadence.core.dialect import Dialect, SQLiteDialect
from cadence.core.protocols import Connection

Row = dict[str, Any]


def _as_dict(row: Any, columns: Sequence[str]) -> Row:
    if hasattr(row, "keys"):
        return {key: row[key] for key in row.keys()}
    return dict(zip(columns, row, strict=True))


class BaseRepository:
    """Connection plus dialect, with row-to-dict helpers."""

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def ph(self, count: int) -> str:
        """``count`` comma-separated bind markers, e.g. ``?, ?, ?``."""
        return self.dialect.placeholders(count)

    def execute(self, sql: str, params: tuple = ()) -> Any:
        return self.conn.execute(sql, params)

    def execute_many(self, sql: str, params: list[tuple]) -> Any:
        return self.conn.executemany(sql, params)

    def rowcount(self, sql: str, params: tuple = ()) -> int:
        """Run a guarded UPDATE/DELETE and report how many rows it touched.

        Zero means the WHERE precondition did not hold; compare-and-set
        callers treat that as a lost race.
        """
        count = getattr(self.conn.execute(sql, params), "rowcount", None)
        return -1 if count is None else count

    def query(self, sql: str, params: tuple = ()) -> list[Row]:
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        description = getattr(cursor, "description", None) or ()
        columns = [col[0] for col in description]
        return [_as_dict(row, columns) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> Row | None:
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()


__all__ = ["BaseRepository", "Row"]
