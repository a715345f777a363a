"""Tests for ThreadSchedulerBackend."""

import time

from cadence.core.settings import SchedulerBackendType
from cadence.scheduling import ThreadSchedulerBackend, create_backend
from cadence.scheduling.protocol import SchedulerBackend


class TestThreadSchedulerBackend:
    """Test ThreadSchedulerBackend implementation."""

    def test_implements_protocol(self):
        backend = ThreadSchedulerBackend()
        assert isinstance(backend, SchedulerBackend)
        assert backend.name == "thread"

    def test_start_and_stop(self):
        """Backend starts and stops cleanly."""
        backend = ThreadSchedulerBackend()
        tick_count = 0

        async def tick():
            nonlocal tick_count
            tick_count += 1

        backend.start(tick, interval_seconds=0.1)
        assert backend.is_running
        time.sleep(0.35)
        backend.stop()

        assert not backend.is_running
        assert tick_count >= 2

    def test_run_immediately(self):
        backend = ThreadSchedulerBackend(run_immediately=True)
        ticked = []

        async def tick():
            ticked.append(True)

        backend.start(tick, interval_seconds=10)
        time.sleep(0.1)
        backend.stop()
        assert ticked == [True]

    def test_failing_tick_keeps_loop_alive(self):
        backend = ThreadSchedulerBackend()
        calls = 0

        async def tick():
            nonlocal calls
            calls += 1
            raise RuntimeError("tick exploded")

        backend.start(tick, interval_seconds=0.05)
        time.sleep(0.3)
        assert backend.is_running
        backend.stop()
        assert calls >= 2

    def test_health_before_start(self):
        health = ThreadSchedulerBackend().health()
        assert health["healthy"] is False
        assert health["backend"] == "thread"
        assert health["tick_count"] == 0
        assert health["last_tick"] is None

    def test_health_after_start(self):
        backend = ThreadSchedulerBackend()

        async def tick():
            pass

        backend.start(tick, interval_seconds=0.1)
        time.sleep(0.15)
        health = backend.health()
        backend.stop()

        assert health["healthy"] is True
        assert health["tick_count"] >= 1
        assert health["last_tick"] is not None
        assert health["interval_seconds"] == 0.1

    def test_double_start_ignored(self):
        backend = ThreadSchedulerBackend()

        async def tick():
            pass

        backend.start(tick, interval_seconds=1.0)
        thread = backend._thread
        backend.start(tick, interval_seconds=1.0)
        assert backend._thread is thread
        backend.stop()

    def test_stop_without_start(self):
        ThreadSchedulerBackend().stop()


def test_create_backend_default_is_thread():
    assert isinstance(create_backend(SchedulerBackendType.THREAD), ThreadSchedulerBackend)
