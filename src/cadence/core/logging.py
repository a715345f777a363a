"""
Structured logging for the cadence engine.

Manifesto:
    A scheduler runs unattended. When a reminder did not fire, the log is
    the only witness, so every event is structured and carries the plan
    and task it concerns.

    - **Structures:** key-value events, JSON for aggregation
    - **Correlates:** plan_id / task_id bound per plan with LogContext
    - **Flexes:** colored console for development, JSON otherwise

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="cadence")
            │
            ▼
        structlog processor chain:
            1. TimeStamper(iso)
            2. merge_contextvars
            3. add_log_level / add_logger_name
            4. add_service_metadata
            5. ecs_compatible (JSON only: @timestamp, log.level)
            6. JSONRenderer | ConsoleRenderer

Examples:
    >>> from cadence.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> logger = get_logger(__name__)
    >>> logger.info("plans_materialized", task_id="task-1", created=4)

Tags:
    logging, structlog, observability, ecs, json-logging, cadence

Doc-Types:
    - API Reference
    - Observability Guide
"""

from __future__ import annotations

import contextvars
import logging
import sys
from collections.abc import Mapping
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# structlog keys renamed for ECS ingestion in JSON mode
ECS_FIELDS = {"timestamp": "@timestamp", "level": "log.level"}


class _ServiceStamp:
    """Processor that tags every event with the emitting service."""

    def __init__(self, service: str) -> None:
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", self.service)
        return event_dict


def _rename_ecs_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, ecs_key in ECS_FIELDS.items():
        if key in event_dict:
            event_dict[ecs_key] = event_dict.pop(key)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "cadence",
    add_timestamp: bool = True,
) -> None:
    """Configure structlog (and stdlib logging) for the process.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        json_format: JSON lines when True, console when False; when None,
            JSON unless stdout is a terminal.
        service: Value of the ``service.name`` field.
        add_timestamp: Stamp events with an ISO timestamp.
    """
    numeric_level = getattr(logging, level.upper())
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = []
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _ServiceStamp(service),
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            _rename_ecs_fields,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    # APScheduler and httpx log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    """structlog logger for ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> Mapping[str, contextvars.Token[Any]]:
    """Bind fields onto every later event in this context."""
    return structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Scoped log fields, usable with ``with`` and ``async with``.

    Leaving the scope restores whatever the keys were bound to before, so
    nested scopes compose. The scheduler wraps each plan it processes::

        with LogContext(plan_id=plan.id, task_id=plan.task_id):
            logger.info("plan_claimed")
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = fields
        self._tokens: Mapping[str, contextvars.Token[Any]] = {}

    def __enter__(self) -> LogContext:
        self._tokens = bind_context(**self.fields)
        return self

    def __exit__(self, *exc_info: object) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: object) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "ECS_FIELDS",
    "LogContext",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
