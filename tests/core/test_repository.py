"""Tests for BaseRepository over the SQLite connection adapter."""

import pytest

from cadence.core.repository import BaseRepository
from cadence.ops.sqlite_conn import SqliteConnection


@pytest.fixture()
def repo():
    conn = SqliteConnection(":memory:")
    conn.execute("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)")
    conn.commit()
    yield BaseRepository(conn)
    conn.close()


class TestBaseRepository:
    def test_ph_returns_n_placeholders(self, repo):
        assert repo.ph(1) == "?"
        assert repo.ph(3) == "?, ?, ?"

    def test_query_returns_dicts(self, repo):
        repo.execute_many("INSERT INTO items (id, name) VALUES (?, ?)", [(1, "a"), (2, "b")])
        repo.commit()
        rows = repo.query("SELECT * FROM items ORDER BY id")
        assert rows == [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]

    def test_query_one_and_empty(self, repo):
        assert repo.query("SELECT * FROM items") == []
        assert repo.query_one(f"SELECT * FROM items WHERE id = {repo.ph(1)}", (1,)) is None

    def test_rowcount_reports_affected_rows(self, repo):
        repo.execute("INSERT INTO items (id, name) VALUES (1, 'a')")
        assert repo.rowcount("UPDATE items SET name = 'z' WHERE id = 1") == 1
        assert repo.rowcount("UPDATE items SET name = 'z' WHERE id = 99") == 0

    def test_rollback_discards_uncommitted(self, repo):
        repo.execute("INSERT INTO items (id, name) VALUES (1, 'a')")
        repo.rollback()
        assert repo.query("SELECT * FROM items") == []
