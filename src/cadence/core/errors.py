"""
Structured error types for the cadence scheduling engine.

Provides a typed error hierarchy with the metadata needed for retry
decisions, plan bookkeeping and operator-facing reporting.

Manifesto:
    - **Typed Error Hierarchy:** Rule authoring, occurrence computation,
      plan concurrency and notifier delivery fail in different ways and
      are handled at different layers.
    - **Explicit Retry Semantics:** Each error knows if it's retryable.
      The scheduler consults ``retryable`` before re-arming a plan.
    - **Rich Context:** Errors carry task/plan identifiers for logging.
    - **Error Chaining:** Original exceptions are kept as ``cause``.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        CadenceError                             │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  ValidationError        TransientError      ConcurrencyError    │
        │  (VALIDATION)           (retryable=True)    (CONCURRENCY)       │
        │       │                      │                   │              │
        │  RuleValidationError    NotifierFailure     ClaimConflict       │
        │                         NotifierTimeout     RegenerationConflict│
        │                                                                 │
        │  OccurrenceComputationError    ExclusionDataUnavailable         │
        │  (INTERNAL)                    (CALENDAR, degraded)             │
        │                                                                 │
        │  NotFoundError                 InvalidTransitionError           │
        │  PlanNotFoundError             (STATE)                          │
        │  TaskNotFoundError                                              │
        │                                                                 │
        │  ConfigError                                                    │
        └─────────────────────────────────────────────────────────────────┘

Propagation:
    Compilation and generation errors surface to the caller immediately.
    Scheduler-loop errors are recorded on the plan (``error_message``) and
    never escape a tick.

Examples:
    >>> error = NotifierTimeout("webhook did not answer", retry_after=30)
    >>> error.retryable
    True
    >>> RuleValidationError(["months[0]: 13 is not in 1..12"]).errors
    ['months[0]: 13 is not in 1..12']

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    cadence, scheduling

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories are grouped by their typical retry behavior:
    - **Infrastructure (usually transient):** NETWORK, DATABASE
    - **Input errors (never retryable):** VALIDATION, CONFIG
    - **Engine errors:** CALENDAR, CONCURRENCY, STATE
    - **Internal errors:** INTERNAL, UNKNOWN
    """

    # Infrastructure errors (usually transient)
    NETWORK = "NETWORK"           # Notifier transport, timeouts
    DATABASE = "DATABASE"         # Connection, query failures

    # Input errors
    VALIDATION = "VALIDATION"     # Rule authoring errors
    CONFIG = "CONFIG"             # Missing/invalid settings

    # Engine errors
    CALENDAR = "CALENDAR"         # Holiday data gaps
    CONCURRENCY = "CONCURRENCY"   # Claim races, regeneration locks
    STATE = "STATE"               # Illegal plan transitions
    NOT_FOUND = "NOT_FOUND"       # Unknown plan/task ids

    # Internal errors
    INTERNAL = "INTERNAL"         # Bugs, contract violations
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover the identifiers the engine works with; anything
    else goes into ``metadata``. ``to_dict()`` drops unset fields so the
    result can be passed straight to a structured logger.

    Attributes:
        task_id: Task owning the rule or plan
        plan_id: Execution plan identifier
        rule_type: by_day / by_week / by_interval
        destination: Notifier destination that was being addressed
        instance_id: Scheduler instance that observed the error
        metadata: Additional key-value pairs
    """

    task_id: str | None = None
    plan_id: str | None = None
    rule_type: str | None = None
    destination: str | None = None
    instance_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["task_id", "plan_id", "rule_type", "destination", "instance_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CadenceError(Exception):
    """
    Base exception for all cadence errors.

    All CadenceError instances carry:
    - **category:** ErrorCategory enum for classification and routing
    - **retryable:** Boolean indicating if operation can be retried
    - **retry_after:** Optional seconds to wait before retry
    - **context:** ErrorContext with structured metadata
    - **cause:** Optional underlying exception for chaining

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> error = CadenceError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(task_id="task-1").context.task_id
        'task-1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CadenceError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PlanNotFoundError(plan_id).with_context(task_id="task-7")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Usually Retryable)
# =============================================================================


class TransientError(CadenceError):
    """
    Temporary error that may succeed on retry.

    Notifier delivery problems are the main source: network failures,
    upstream 5xx answers, timeouts.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NotifierFailure(TransientError):
    """The notifier reported a delivery failure."""


class NotifierTimeout(NotifierFailure):
    """The notifier did not answer within the configured timeout."""

    def __init__(
        self,
        message: str = "Notifier timed out",
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class DatabaseError(TransientError):
    """Database access failed."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(CadenceError):
    """
    Input validation error.

    Never retryable - the input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class RuleValidationError(ValidationError):
    """
    A raw recurrence description violates one or more constraints.

    ``errors`` lists every violation found, each prefixed with the path
    of the offending field, so the authoring UI can show them all at once.
    """

    def __init__(self, errors: list[str], **kwargs: Any):
        self.errors = list(errors)
        summary = "; ".join(self.errors) if self.errors else "invalid rule"
        super().__init__(f"Invalid schedule rule: {summary}", **kwargs)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = self.errors
        return result


class ConfigError(CadenceError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# ENGINE ERRORS
# =============================================================================


class OccurrenceComputationError(CadenceError):
    """
    Occurrence expansion hit an input that compilation should have rejected.

    Treated as a programming-contract violation: surfaced to the caller,
    never retried.
    """

    default_category = ErrorCategory.INTERNAL


class ExclusionDataUnavailable(CadenceError):
    """
    Holiday data is missing for a date outside the loaded horizon.

    Degraded, non-fatal: callers log it and treat the date as a
    regular (non-holiday) day.
    """

    default_category = ErrorCategory.CALENDAR

    def __init__(self, message: str, *, dates: list[Any] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.dates = list(dates or [])


class ConcurrencyError(CadenceError):
    """Base for expected concurrency outcomes."""

    default_category = ErrorCategory.CONCURRENCY


class ClaimConflict(ConcurrencyError):
    """
    Another worker won the claim for a plan, or the plan is no longer claimable.

    Expected outcome of the claim race; the losing worker simply no-ops.
    """

    def __init__(self, plan_id: str, message: str | None = None, **kwargs: Any):
        self.plan_id = plan_id
        super().__init__(message or f"Plan {plan_id} was not claimable", **kwargs)


class RegenerationConflict(ConcurrencyError):
    """Plan regeneration for the task is already running on another instance."""

    default_retryable = True

    def __init__(self, task_id: str, **kwargs: Any):
        self.task_id = task_id
        super().__init__(f"Regeneration already in progress for task {task_id}", **kwargs)


class InvalidTransitionError(CadenceError):
    """
    An illegal plan status transition was attempted.

    Transition validation is strict; a legitimate missing transition must
    be added to ``PLAN_VALID_TRANSITIONS`` explicitly.
    """

    default_category = ErrorCategory.STATE

    def __init__(self, current: str, target: str, **kwargs: Any):
        self.current = current
        self.target = target
        super().__init__(f"Invalid PlanStatus transition: {current} → {target}", **kwargs)


class NotFoundError(CadenceError):
    """A referenced entity does not exist."""

    default_category = ErrorCategory.NOT_FOUND


class PlanNotFoundError(NotFoundError):
    """No execution plan with the given id."""

    def __init__(self, plan_id: str, **kwargs: Any):
        self.plan_id = plan_id
        super().__init__(f"Execution plan not found: {plan_id}", **kwargs)


class TaskNotFoundError(NotFoundError):
    """No task target with the given id."""

    def __init__(self, task_id: str, **kwargs: Any):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}", **kwargs)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, CadenceError):
        return error.retryable
    retryable_types = (
        ConnectionError,
        TimeoutError,
        OSError,
    )
    return isinstance(error, retryable_types)


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, CadenceError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CadenceError",
    # Transient
    "TransientError",
    "NotifierFailure",
    "NotifierTimeout",
    "DatabaseError",
    # Validation
    "ValidationError",
    "RuleValidationError",
    "ConfigError",
    # Engine
    "OccurrenceComputationError",
    "ExclusionDataUnavailable",
    "ConcurrencyError",
    "ClaimConflict",
    "RegenerationConflict",
    "InvalidTransitionError",
    "NotFoundError",
    "PlanNotFoundError",
    "TaskNotFoundError",
    # Utilities
    "is_retryable",
    "categorize_error",
]
