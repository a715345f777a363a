"""APScheduler timing backend.

Registers one interval job on an APScheduler 3.x ``BackgroundScheduler``
that runs the async tick. ``max_instances=1`` and ``coalesce=True`` keep
a slow tick from piling up overlapping runs.

Requires the ``apscheduler`` extra::

    pip install cadence-core[apscheduler]
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

from cadence.core.errors import ConfigError
from cadence.core.logging import get_logger
from cadence.scheduling.protocol import TickCallback

logger = get_logger(__name__)

JOB_ID = "cadence_scheduler_tick"


def _require_apscheduler():
    try:
        from apscheduler.schedulers.background import BackgroundScheduler
    except ImportError:
        raise ConfigError(
            "APScheduler is required for the apscheduler backend. "
            "Install it with: pip install cadence-core[apscheduler]"
        ) from None
    return BackgroundScheduler


class APSchedulerBackend:
    """``SchedulerBackend`` on top of APScheduler's ``BackgroundScheduler``."""

    name = "apscheduler"

    def __init__(self) -> None:
        BackgroundScheduler = _require_apscheduler()  # noqa: N806
        self._scheduler = BackgroundScheduler()
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval: float | None = None

    def start(self, tick_callback: TickCallback, interval_seconds: float = 60.0) -> None:
        if self._scheduler.running:
            logger.warning("backend_already_started", backend=self.name)
            return

        def _tick() -> None:
            self._tick_count += 1
            self._last_tick = datetime.now(UTC)
            try:
                asyncio.run(tick_callback())
            except Exception:
                logger.exception("tick_failed", backend=self.name)

        self._interval = interval_seconds
        self._scheduler.add_job(
            _tick,
            "interval",
            seconds=interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("backend_started", backend=self.name, interval_seconds=interval_seconds)

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=True)
            logger.info("backend_stopped", backend=self.name)

    def health(self) -> dict[str, Any]:
        running = bool(self._scheduler.running)
        return {
            "healthy": running,
            "backend": self.name,
            "tick_count": self._tick_count,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "interval_seconds": self._interval,
            "scheduled_jobs": len(self._scheduler.get_jobs()) if running else 0,
        }


__all__ = ["APSchedulerBackend"]
