"""
Request-scoped context for operations.

Every operation function receives an :class:`OperationContext` as its first
argument. It carries the database connection and dialect, the settings in
force, the clock that defines "now" in the configured civil zone, and the
caller identity used in logs.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from cadence.core.dialect import Dialect, SQLiteDialect
from cadence.core.protocols import Connection
from cadence.core.settings import CadenceSettings, get_settings
from cadence.core.timestamps import civil_now


@dataclass
class OperationContext:
    """Context passed to every operation function.

    Attributes:
        conn: Database connection satisfying :class:`cadence.core.protocols.Connection`.
        settings: Settings in force (defaults to the cached ``get_settings()``).
        dialect: SQL dialect of ``conn``; SQLite when omitted.
        clock: Returns the current civil time; tests pin it.
        request_id: Unique ID for this invocation (auto-generated).
        caller: Origin of the request, ``"cli"``, ``"sdk"`` or ``"scheduler"``.
        dry_run: When ``True``, mutating operations return a preview only.
        metadata: Arbitrary key/value pairs forwarded to logging.
    """

    conn: Connection
    settings: CadenceSettings = field(default_factory=get_settings)
    dialect: Dialect = field(default_factory=SQLiteDialect)
    clock: Callable[[], datetime] | None = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    caller: str = "sdk"
    dry_run: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def now(self) -> datetime:
        """Current civil time, naive, in the configured zone."""
        if self.clock is not None:
            return self.clock()
        return civil_now(self.settings.tz)

    def today(self) -> date:
        return self.now().date()
