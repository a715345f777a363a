"""Tests for cadence.core.errors module."""

import pytest

from cadence.core.errors import (
    CadenceError,
    ClaimConflict,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvalidTransitionError,
    NotifierFailure,
    NotifierTimeout,
    PlanNotFoundError,
    RegenerationConflict,
    RuleValidationError,
    TaskNotFoundError,
    TransientError,
    ValidationError,
    categorize_error,
    is_retryable,
)


class TestErrorContext:
    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.task_id is None
        assert ctx.metadata == {}
        assert ctx.to_dict() == {}

    def test_to_dict_includes_set_fields_and_metadata(self):
        ctx = ErrorContext(task_id="t-1", plan_id="p-1", metadata={"attempt": 2})
        assert ctx.to_dict() == {"task_id": "t-1", "plan_id": "p-1", "attempt": 2}


class TestCadenceError:
    def test_defaults(self):
        error = CadenceError("boom")
        assert error.message == "boom"
        assert error.category is ErrorCategory.INTERNAL
        assert error.retryable is False

    def test_with_context_routes_known_and_unknown_keys(self):
        error = CadenceError("boom").with_context(task_id="t-1", window="2024-09")
        assert error.context.task_id == "t-1"
        assert error.context.metadata == {"window": "2024-09"}

    def test_cause_is_chained(self):
        cause = ConnectionError("reset")
        error = NotifierFailure("delivery failed", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "reset"

    def test_retryable_override(self):
        assert TaskNotFoundError("t-1", retryable=False).retryable is False
        assert ValidationError("bad", retryable=True).retryable is True


class TestSubclasses:
    def test_transient_family_is_retryable(self):
        assert TransientError("x").retryable is True
        assert NotifierFailure("x").retryable is True
        timeout = NotifierTimeout(timeout=5.0)
        assert timeout.retryable is True
        assert timeout.timeout == 5.0
        assert timeout.category is ErrorCategory.NETWORK

    def test_validation_family_is_not_retryable(self):
        assert ValidationError("x").retryable is False
        assert ConfigError("x").category is ErrorCategory.CONFIG

    def test_rule_validation_error_lists_every_violation(self):
        error = RuleValidationError(["rule_type: required", "execution_times: at least one"])
        assert error.errors == ["rule_type: required", "execution_times: at least one"]
        assert "rule_type: required" in error.message
        assert error.to_dict()["errors"] == error.errors

    def test_claim_conflict_carries_plan_id(self):
        error = ClaimConflict("p-9")
        assert error.plan_id == "p-9"
        assert error.category is ErrorCategory.CONCURRENCY
        assert error.retryable is False

    def test_regeneration_conflict_is_retryable(self):
        error = RegenerationConflict("t-1")
        assert error.task_id == "t-1"
        assert error.retryable is True

    def test_invalid_transition_records_states(self):
        error = InvalidTransitionError("completed", "pending")
        assert (error.current, error.target) == ("completed", "pending")
        assert error.category is ErrorCategory.STATE

    def test_not_found_messages(self):
        assert "p-1" in PlanNotFoundError("p-1").message
        assert "t-1" in TaskNotFoundError("t-1").message


class TestHelpers:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (NotifierFailure("x"), True),
            (ValidationError("x"), False),
            (ConnectionError("x"), True),
            (TimeoutError("x"), True),
            (KeyError("x"), False),
        ],
    )
    def test_is_retryable(self, error, expected):
        assert is_retryable(error) is expected

    def test_categorize_error(self):
        assert categorize_error(ClaimConflict("p")) is ErrorCategory.CONCURRENCY
        assert categorize_error(ConnectionError()) is ErrorCategory.NETWORK
        assert categorize_error(ValueError()) is ErrorCategory.VALIDATION
        assert categorize_error(KeyError()) is ErrorCategory.UNKNOWN
