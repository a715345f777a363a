"""SQL fragments that differ between SQLite and PostgreSQL.

Only three things vary for the cadence tables: the bind marker, the
"insert unless the key exists" form used by plan materialization, and
the upsert used when rules and holidays are saved. Everything else is
plain SQL shared by both backends.

Timestamps are bound from Python as civil ISO strings, so no dialect
exposes the database clock.

    >>> SQLiteDialect().placeholders(3)
    '?, ?, ?'
    >>> PostgreSQLDialect().insert_or_ignore("t", ["a"])
    'INSERT INTO t (a) VALUES (%s) ON CONFLICT DO NOTHING'
"""

from __future__ import annotations

from typing import ClassVar, Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    @property
    def name(self) -> str: ...

    def placeholder(self, index: int) -> str: ...

    def placeholders(self, count: int) -> str: ...

    def insert_or_ignore(self, table: str, columns: list[str]) -> str: ...

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str: ...


class _ConflictDialect:
    """Shared ``INSERT ... ON CONFLICT`` rendering; subclasses set the markers."""

    dialect_name: ClassVar[str]
    marker: ClassVar[str]
    # name of the pseudo-table holding the rejected row
    excluded: ClassVar[str]

    @property
    def name(self) -> str:
        return self.dialect_name

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return self.marker

    def placeholders(self, count: int) -> str:
        return ", ".join([self.marker] * count)

    def _values(self, table: str, columns: list[str]) -> str:
        return f"{table} ({', '.join(columns)}) VALUES ({self.placeholders(len(columns))})"

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        return f"INSERT INTO {self._values(table, columns)} ON CONFLICT DO NOTHING"

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        assignments = ", ".join(
            f"{col} = {self.excluded}.{col}" for col in columns if col not in key_columns
        )
        return (
            f"INSERT INTO {self._values(table, columns)} "
            f"ON CONFLICT ({', '.join(key_columns)}) DO UPDATE SET {assignments}"
        )


class SQLiteDialect(_ConflictDialect):
    dialect_name = "sqlite"
    marker = "?"
    excluded = "excluded"

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        return f"INSERT OR IGNORE INTO {self._values(table, columns)}"


class PostgreSQLDialect(_ConflictDialect):
    """psycopg ``%s`` markers."""

    dialect_name = "postgresql"
    marker = "%s"
    excluded = "EXCLUDED"


_BY_NAME: dict[str, type[_ConflictDialect]] = {
    "sqlite": SQLiteDialect,
    "postgresql": PostgreSQLDialect,
    "postgres": PostgreSQLDialect,
}


def get_dialect(db_type: str) -> Dialect:
    """Dialect for a database type name (case-insensitive).

    Raises:
        ValueError: If ``db_type`` is not a known backend.
    """
    try:
        return _BY_NAME[db_type.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown dialect '{db_type}'. Supported: postgresql, sqlite"
        ) from None


__all__ = [
    "Dialect",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "get_dialect",
]
