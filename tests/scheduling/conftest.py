"""Pytest fixtures for scheduling tests."""

from datetime import date, time

import pytest

from cadence.rules.models import DateWindow, TaskTarget
from cadence.scheduling import LockManager, PlanStateMachine
from cadence.scheduling.retry import ConstantBackoff
from tests._support import HOOK


@pytest.fixture
def lock_manager(conn):
    """LockManager with a fixed instance id."""
    return LockManager(conn, instance_id="test-instance")


@pytest.fixture
def state_machine(plans):
    """State machine allowing three attempts, one minute apart."""
    return PlanStateMachine(plans, retry=ConstantBackoff(max_retries=3, delay=60), instance_id="worker-1")


@pytest.fixture
def make_plan(conn, plans, clock):
    """Insert a pending plan for one slot and return it."""

    def _make(task_id: str = "report", day: date = date(2024, 9, 2), at: time = time(7, 30)):
        plans.insert_missing(task_id, [(day, at)], clock())
        conn.commit()
        window = DateWindow(day, day)
        return next(p for p in plans.list_for_task(task_id, window) if p.scheduled_time == at)

    return _make


@pytest.fixture
def target(targets):
    """Active task target with a webhook destination."""
    task = TaskTarget(task_id="report", name="Daily report", destination=HOOK)
    targets.upsert(task)
    return task
