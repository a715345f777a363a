"""Thread-based timing backend (default).

One daemon thread waits on a stop ``Event`` for the tick interval and
runs each async tick to completion with ``asyncio.run``. A tick that
raises is logged and the loop keeps going; ticks never overlap.

Tags:
    cadence, scheduling, backend, threading
"""

from __future__ import annotations

import asyncio
import threading
from datetime import UTC, datetime
from typing import Any

from cadence.core.logging import get_logger
from cadence.scheduling.protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class ThreadSchedulerBackend:
    """Daemon-thread ticker.

    Args:
        run_immediately: Fire the first tick at start instead of after one
            interval.
        join_timeout: Seconds ``stop()`` waits for the thread.
    """

    name = "thread"

    def __init__(self, run_immediately: bool = False, join_timeout: float = 5.0) -> None:
        self.run_immediately = run_immediately
        self.join_timeout = join_timeout
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval = 60.0

    def _run_tick(self, tick_callback: TickCallback) -> None:
        with self._lock:
            self._tick_count += 1
            self._last_tick = datetime.now(UTC)
        try:
            asyncio.run(tick_callback())
        except Exception:
            logger.exception("tick_failed", backend=self.name)

    def start(self, tick_callback: TickCallback, interval_seconds: float = 60.0) -> None:
        if self.is_running:
            logger.warning("backend_already_started", backend=self.name)
            return

        self._interval = interval_seconds
        self._stop_event.clear()

        def _loop() -> None:
            logger.info("backend_started", backend=self.name, interval_seconds=interval_seconds)
            if self.run_immediately and not self._stop_event.is_set():
                self._run_tick(tick_callback)
            while not self._stop_event.wait(interval_seconds):
                self._run_tick(tick_callback)
            logger.info("backend_stopped", backend=self.name)

        self._thread = threading.Thread(target=_loop, daemon=True, name="cadence-scheduler")
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=self.join_timeout)
        if self._thread.is_alive():
            logger.warning("backend_stop_timeout", backend=self.name, timeout=self.join_timeout)
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def get_health(self) -> BackendHealth:
        return BackendHealth(
            healthy=self.is_running,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            extra={"interval_seconds": self._interval},
        )

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()


__all__ = ["ThreadSchedulerBackend"]
