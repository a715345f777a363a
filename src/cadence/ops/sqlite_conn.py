"""SQLite connection adapter.

Wraps a :class:`sqlite3.Connection` so it satisfies the
:class:`~cadence.core.protocols.Connection` protocol. Each ``execute``
runs on a fresh cursor, which is returned (callers read ``rowcount`` and
rows from it) and also remembered for connection-level ``fetchone`` /
``fetchall``.

The scheduler ticks on a background thread, so the connection is opened
with ``check_same_thread=False`` and every statement is serialized
through a re-entrant lock.

Usage::

    conn = SqliteConnection(":memory:")
    conn.execute("CREATE TABLE t (id INTEGER)")
    conn.execute("INSERT INTO t VALUES (?)", (1,))
    conn.execute("SELECT * FROM t")
    row = conn.fetchone()
    conn.commit()
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Any


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol."""

    def __init__(
        self,
        path: str = ":memory:",
        *,
        row_factory: Any = sqlite3.Row,
        timeout: float = 30.0,
    ) -> None:
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False, timeout=timeout)
        self._conn.row_factory = row_factory
        self._cursor = self._conn.cursor()
        self._lock = threading.RLock()
        if path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute(sql, params)
            self._cursor = cursor
            return cursor

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.executemany(sql, params)
            self._cursor = cursor
            return cursor

    def fetchone(self) -> Any:
        with self._lock:
            return self._cursor.fetchone()

    def fetchall(self) -> list:
        with self._lock:
            return self._cursor.fetchall()

    def commit(self) -> None:
        with self._lock:
            self._conn.commit()

    def rollback(self) -> None:
        with self._lock:
            self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    # -- convenience -------------------------------------------------------

    @property
    def raw(self) -> sqlite3.Connection:
        """The underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self.path!r})"
