"""Shared fixtures for cadence.ops tests."""

import pytest

from cadence.ops.requests import SaveRuleRequest
from cadence.ops.rules import save_rule
from tests._support import HOOK, by_week


@pytest.fixture(autouse=True)
def _holidays(stored_holidays):
    """Every ops test runs against the stored 2024-2025 calendar."""
    return stored_holidays


@pytest.fixture()
def mondays():
    """Every Monday at 09:00, holidays excluded."""
    return by_week([1], times=["09:00"], exclude_holidays=True)


@pytest.fixture()
def saved_task(ctx, mondays):
    """Task ``report`` saved with the Monday rule and a webhook target."""
    result = save_rule(ctx, SaveRuleRequest(task_id="report", rule=mondays, name="Weekly report", destination=HOOK))
    assert result.success, result.error
    return result.data
