"""
Operation result envelope.

Provides :class:`OperationResult`, the typed success/failure envelope every
operation function returns, and :class:`PagedResult` for list operations.
Operations never raise: :func:`fail_from_error` turns the engine's typed
errors into a failure code the CLI (or any other caller) can branch on.

::

    CadenceError subclass          code
    ─────────────────────────────  ────────────────────
    ValidationError (incl. rule)   VALIDATION_FAILED
    ValueError (bad window, ...)   VALIDATION_FAILED
    NotFoundError                  NOT_FOUND
    ConcurrencyError               CONFLICT
    InvalidTransitionError         INVALID_TRANSITION
    anything else                  INTERNAL
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from cadence.core.errors import (
    CadenceError,
    ConcurrencyError,
    ErrorCategory,
    InvalidTransitionError,
    NotFoundError,
    RuleValidationError,
    ValidationError,
)
from cadence.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class OperationError:
    """Structured error detail for failed operations.

    Attributes:
        code: Machine-readable code (``NOT_FOUND``, ``VALIDATION_FAILED``, ...).
        message: Human-readable description of the error.
        category: Optional :class:`ErrorCategory` for routing.
        details: Extra key/value context (violations, ids, ...).
        retryable: Whether the caller may retry the operation as-is.
    """

    code: str
    message: str
    category: ErrorCategory | None = None
    details: dict[str, Any] = field(default_factory=dict)
    retryable: bool = False


@dataclass
class OperationResult(Generic[T]):
    """Envelope returned by every operation function.

    Use :meth:`ok` and :meth:`fail` rather than the constructor.
    """

    success: bool
    data: T | None = None
    error: OperationError | None = None
    warnings: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        data: T,
        *,
        warnings: list[str] | None = None,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        return cls(
            success=True,
            data=data,
            warnings=warnings or [],
            elapsed_ms=elapsed_ms,
            metadata=metadata or {},
        )

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        *,
        category: ErrorCategory | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        return cls(
            success=False,
            error=OperationError(
                code=code,
                message=message,
                category=category,
                details=details or {},
                retryable=retryable,
            ),
            elapsed_ms=elapsed_ms,
            metadata=metadata or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form; empty optional fields are left out."""
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = _plain(self.data)
        if self.error is not None:
            error = {"code": self.error.code, "message": self.error.message, "retryable": self.error.retryable}
            if self.error.details:
                error["details"] = self.error.details
            out["error"] = error
        optional = {
            "warnings": self.warnings,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "metadata": self.metadata,
        }
        out.update({key: value for key, value in optional.items() if value})
        return out


@dataclass
class PagedResult(OperationResult[list[T]]):
    """Paginated result; ``has_more`` is derived from total, offset and limit."""

    total: int = 0
    limit: int = 50
    offset: int = 0
    has_more: bool = False

    @classmethod
    def from_items(
        cls,
        items: list[T],
        total: int,
        *,
        limit: int = 50,
        offset: int = 0,
        warnings: list[str] | None = None,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> PagedResult[T]:
        return cls(
            success=True,
            data=items,
            total=total,
            limit=limit,
            offset=offset,
            has_more=(offset + limit) < total,
            warnings=warnings or [],
            elapsed_ms=elapsed_ms,
            metadata=metadata or {},
        )

    def to_dict(self) -> dict[str, Any]:
        page = {"total": self.total, "limit": self.limit, "offset": self.offset, "has_more": self.has_more}
        return {**super().to_dict(), **page}


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


# first match wins; RuleValidationError is caught by ValidationError
_ERROR_CODES: tuple[tuple[type[Exception], str], ...] = (
    (ValidationError, "VALIDATION_FAILED"),
    (ValueError, "VALIDATION_FAILED"),
    (NotFoundError, "NOT_FOUND"),
    (ConcurrencyError, "CONFLICT"),
    (InvalidTransitionError, "INVALID_TRANSITION"),
)


def _error_details(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, RuleValidationError):
        return {"errors": exc.errors}
    if isinstance(exc, InvalidTransitionError):
        return {"current": exc.current, "target": exc.target}
    return {}


def fail_from_error(exc: Exception, action: str, *, elapsed_ms: float = 0.0) -> OperationResult[Any]:
    """Map an exception raised inside an operation to a failed result.

    Expected failures (bad input, missing rows, lost races, illegal
    transitions) keep their own message. Anything else is logged with its
    traceback and reported as ``INTERNAL``.
    """
    typed = isinstance(exc, CadenceError)
    category = exc.category if typed else None
    for exc_type, code in _ERROR_CODES:
        if isinstance(exc, exc_type):
            return OperationResult.fail(
                code,
                exc.message if typed else str(exc),
                category=category,
                details=_error_details(exc),
                retryable=code == "CONFLICT" and exc.retryable,
                elapsed_ms=elapsed_ms,
            )

    logger.exception("op_failed", action=action, error=str(exc))
    return OperationResult.fail(
        "INTERNAL",
        f"Failed to {action}: {exc.message if typed else exc}",
        category=category,
        details=exc.to_dict() if typed else {},
        retryable=typed and exc.retryable,
        elapsed_ms=elapsed_ms,
    )


class _Timer:
    __slots__ = ("started",)

    def __init__(self) -> None:
        self.started = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000.0


def start_timer() -> _Timer:
    """Stopwatch started now; read ``.elapsed_ms`` when the operation ends."""
    return _Timer()
