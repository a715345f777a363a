"""Timing backend protocol for the scheduler loop.

A backend only decides *when* ``SchedulerService.tick`` runs. Which plans
are due, who claims them, and what happens on failure all live in the
service, so a test can drive the loop by awaiting ``tick()`` directly.

::

    SchedulerBackend
    ├── ThreadSchedulerBackend     daemon thread + Event.wait   (default)
    └── APSchedulerBackend         BackgroundScheduler interval job
                                   (requires the ``apscheduler`` extra)

Tags:
    cadence, scheduling, protocol, backend, beat-as-poller
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], Awaitable[Any]]


@runtime_checkable
class SchedulerBackend(Protocol):
    """Calls an async tick callback at a fixed interval."""

    name: str

    def start(self, tick_callback: TickCallback, interval_seconds: float = 60.0) -> None:
        """Begin ticking. A second call while running is a no-op."""
        ...

    def stop(self) -> None:
        """Stop ticking, waiting briefly for an in-flight tick."""
        ...

    def health(self) -> dict[str, Any]:
        """At least ``healthy``, ``backend``, ``tick_count`` and ``last_tick``."""
        ...


@dataclass
class BackendHealth:
    """Structured backend health."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            **self.extra,
        }


__all__ = ["BackendHealth", "SchedulerBackend", "TickCallback"]
