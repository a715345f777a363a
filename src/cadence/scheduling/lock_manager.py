"""Database-backed TTL locks.

Manifesto:
    Plan regeneration for one task must not run on two replicas at once:
    both would read the same existing plans and race their deletes and
    inserts. The lock manager provides atomic acquire/release with TTL
    expiry so a crashed replica cannot hold a task hostage.

::

    acquire("regenerate:task-1")
        │
        ├── DELETE expired row for the key
        ├── INSERT-or-ignore (lock_key, owner_id, acquired_at, expires_at)
        │       rowcount 1 → acquired
        ├── row owned by us → refresh expiry, acquired (re-entrant)
        └── otherwise       → held elsewhere, False

Lock timestamps are UTC ISO strings.

Tags:
    cadence, scheduling, distributed-locks, TTL, concurrency
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from uuid import uuid4

from cadence.core.dialect import Dialect, SQLiteDialect
from cadence.core.logging import get_logger
from cadence.core.protocols import Connection
from cadence.core.timestamps import utc_now

logger = get_logger(__name__)

TABLE = "cadence_locks"


class LockManager:
    """TTL lock manager over ``cadence_locks``.

    Example:
        >>> locks = LockManager(conn, instance_id="scheduler-1")
        >>> if locks.acquire_concurrency_lock("regenerate", "task-1"):
        ...     try:
        ...         ...
        ...     finally:
        ...         locks.release_concurrency_lock("regenerate", "task-1")
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        instance_id: str | None = None,
    ) -> None:
        self.conn = conn
        self.dialect = dialect or SQLiteDialect()
        self.instance_id = instance_id or str(uuid4())

    def _ph(self, index: int) -> str:
        """Dialect placeholder at 1-based position."""
        return self.dialect.placeholder(index - 1)

    def acquire(self, lock_key: str, ttl_seconds: int = 300) -> bool:
        """Acquire ``lock_key`` for this instance. True if acquired or refreshed."""
        now = utc_now()
        expires = now + timedelta(seconds=ttl_seconds)

        try:
            self.conn.execute(
                f"DELETE FROM {TABLE} WHERE lock_key = {self._ph(1)} AND expires_at < {self._ph(2)}",
                (lock_key, now.isoformat()),
            )
            cursor = self.conn.execute(
                self.dialect.insert_or_ignore(
                    TABLE, ["lock_key", "owner_id", "acquired_at", "expires_at"]
                ),
                (lock_key, self.instance_id, now.isoformat(), expires.isoformat()),
            )
            inserted = cursor.rowcount > 0
            if not inserted:
                cursor = self.conn.execute(
                    f"UPDATE {TABLE} SET expires_at = {self._ph(1)} "
                    f"WHERE lock_key = {self._ph(2)} AND owner_id = {self._ph(3)}",
                    (expires.isoformat(), lock_key, self.instance_id),
                )
                inserted = cursor.rowcount > 0
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

        if inserted:
            logger.debug("lock_acquired", lock_key=lock_key, owner=self.instance_id)
        else:
            logger.debug("lock_busy", lock_key=lock_key)
        return inserted

    def release(self, lock_key: str) -> bool:
        """Release ``lock_key`` if this instance holds it."""
        cursor = self.conn.execute(
            f"DELETE FROM {TABLE} WHERE lock_key = {self._ph(1)} AND owner_id = {self._ph(2)}",
            (lock_key, self.instance_id),
        )
        self.conn.commit()
        released = cursor.rowcount > 0
        if released:
            logger.debug("lock_released", lock_key=lock_key)
        return released

    def holder(self, lock_key: str) -> str | None:
        """Instance currently holding ``lock_key``, if any."""
        cursor = self.conn.execute(
            f"SELECT owner_id FROM {TABLE} WHERE lock_key = {self._ph(1)} AND expires_at > {self._ph(2)}",
            (lock_key, utc_now().isoformat()),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def is_locked(self, lock_key: str) -> bool:
        return self.holder(lock_key) is not None

    # === Resource locks ===

    def acquire_concurrency_lock(
        self, resource_type: str, resource_name: str, ttl_seconds: int = 300
    ) -> bool:
        return self.acquire(f"{resource_type}:{resource_name}", ttl_seconds)

    def release_concurrency_lock(self, resource_type: str, resource_name: str) -> bool:
        return self.release(f"{resource_type}:{resource_name}")

    @contextmanager
    def held(self, resource_type: str, resource_name: str, ttl_seconds: int = 300) -> Iterator[bool]:
        """Yield whether the lock was acquired; release on exit if it was."""
        acquired = self.acquire_concurrency_lock(resource_type, resource_name, ttl_seconds)
        try:
            yield acquired
        finally:
            if acquired:
                self.release_concurrency_lock(resource_type, resource_name)

    # === Maintenance ===

    def cleanup_expired_locks(self) -> int:
        """Remove all expired locks (left behind by crashed instances)."""
        cursor = self.conn.execute(
            f"DELETE FROM {TABLE} WHERE expires_at < {self._ph(1)}",
            (utc_now().isoformat(),),
        )
        self.conn.commit()
        count = cursor.rowcount
        if count > 0:
            logger.info("expired_locks_removed", count=count)
        return count

    def list_active_locks(self) -> list[dict]:
        cursor = self.conn.execute(
            f"SELECT lock_key, owner_id, acquired_at, expires_at FROM {TABLE} "
            f"WHERE expires_at > {self._ph(1)} ORDER BY acquired_at",
            (utc_now().isoformat(),),
        )
        return [
            {
                "lock_key": row[0],
                "owner_id": row[1],
                "acquired_at": row[2],
                "expires_at": row[3],
            }
            for row in cursor.fetchall()
        ]


__all__ = ["LockManager"]
