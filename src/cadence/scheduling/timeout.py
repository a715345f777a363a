"""Deadline enforcement for notifier calls.

The notifier call is the only blocking step of a tick. It is bounded
whether the notifier is a coroutine function or a plain function; plain
calls run in a worker thread through ``asyncio.to_thread`` so they never
stall the event loop.

::

    call_with_timeout(notifier.send, dest, msg, timeout_seconds=10)
        │
        ├── coroutine function ─► asyncio.wait_for(coro)
        └── plain function     ─► asyncio.wait_for(asyncio.to_thread(fn))
        │
        ▼
    result | TimeoutExpired

A timed-out worker thread cannot be interrupted; it finishes in the
background and its result is discarded.

Tags:
    timeout, deadline, asyncio, notifier, cadence
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable
from typing import Any


class TimeoutExpired(TimeoutError):
    """Raised when an operation exceeds its deadline.

    Attributes:
        timeout: The timeout value that was exceeded
        elapsed: How long the operation ran before being abandoned
        operation: Name/description of the operation
    """

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "operation",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation
        msg = f"Operation '{operation}' timed out after {timeout}s"
        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"
        super().__init__(msg)


async def run_with_timeout_async(
    coro,
    timeout_seconds: float,
    operation: str = "operation",
) -> Any:
    """Await ``coro`` for at most ``timeout_seconds``.

    Raises:
        TimeoutExpired: If execution exceeds the timeout
        ValueError: If ``timeout_seconds`` is not positive
    """
    if timeout_seconds <= 0:
        if inspect.iscoroutine(coro):
            coro.close()
        raise ValueError(f"Timeout must be positive, got {timeout_seconds}")

    start = time.monotonic()
    try:
        return await asyncio.wait_for(coro, timeout=timeout_seconds)
    except TimeoutError:
        raise TimeoutExpired(
            timeout=timeout_seconds,
            elapsed=time.monotonic() - start,
            operation=operation,
        ) from None


async def call_with_timeout(
    func: Callable[..., Any],
    *args: Any,
    timeout_seconds: float,
    operation: str = "operation",
) -> Any:
    """Call a sync or async callable under a deadline."""
    if inspect.iscoroutinefunction(func):
        return await run_with_timeout_async(func(*args), timeout_seconds, operation)

    async def _threaded() -> Any:
        result = await asyncio.to_thread(func, *args)
        if inspect.isawaitable(result):
            return await result
        return result

    return await run_with_timeout_async(_threaded(), timeout_seconds, operation)


__all__ = ["TimeoutExpired", "call_with_timeout", "run_with_timeout_async"]
