"""
Test support utilities for cadence tests.

Helpers that don't fit as pytest fixtures but are shared across test
packages: a pinned clock, a scriptable notifier and shorthand builders for
raw rules.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from cadence.scheduling.models import DeliveryResult

HOOK = "https://hooks.example.com/robot/send?access_token=abc"


def at(hour: int, minute: int = 0, day: int = 2) -> datetime:
    """Civil time on September ``day`` 2024."""
    return datetime(2024, 9, day, hour, minute)


class FakeClock:
    """Callable clock pinned to ``now``; move it with :meth:`advance`."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """Async notifier that records calls and replays scripted outcomes.

    Each entry of ``outcomes`` is consumed per call: a ``DeliveryResult`` is
    returned, an exception is raised. Once exhausted every call succeeds.
    """

    name = "recording"

    def __init__(self, outcomes: Iterable[DeliveryResult | Exception] = (), delay: float = 0.0) -> None:
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def send(self, destination: str, message: str) -> DeliveryResult:
        self.calls.append((destination, message))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return DeliveryResult.ok(self.name)


def by_day(kind: str, times: list[str] | None = None, **fields: Any) -> dict[str, Any]:
    """Raw by_day rule; extra ``fields`` go to the envelope or ``day_mode``."""
    mode = {"type": kind}
    for key in ("days", "nth"):
        if key in fields:
            mode[key] = fields.pop(key)
    return {
        "rule_type": "by_day",
        "day_mode": mode,
        "execution_times": times or ["09:00"],
        **fields,
    }


def by_week(weekdays: list[int], occurrence: str = "every", times: list[str] | None = None, **fields: Any) -> dict[str, Any]:
    return {
        "rule_type": "by_week",
        "week_mode": {"weekdays": weekdays, "occurrence": occurrence},
        "execution_times": times or ["09:00"],
        **fields,
    }


def by_interval(value: int, unit: str, reference: str, times: list[str] | None = None, **fields: Any) -> dict[str, Any]:
    return {
        "rule_type": "by_interval",
        "interval_mode": {"value": value, "unit": unit, "reference_date": reference},
        "execution_times": times or ["09:00"],
        **fields,
    }
