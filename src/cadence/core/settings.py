"""
Centralized settings for cadence.

Manifesto:
    One validated, cached settings object instead of constants scattered
    across the scheduler, the materializer and the CLI. Every field can be
    set through a ``CADENCE_*`` environment variable or a ``.env`` file.

Examples:
    >>> from cadence.core.settings import CadenceSettings
    >>> CadenceSettings(max_retries=5).max_retries
    5

Tags:
    cadence, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from enum import Enum
from functools import cached_property
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerBackendType(str, Enum):
    """Timing backend that drives ``SchedulerService.tick``."""

    THREAD = "thread"
    APSCHEDULER = "apscheduler"


class NotifierType(str, Enum):
    """Channel used to deliver rendered messages."""

    WEBHOOK = "webhook"
    LOGGING = "logging"


class RetryBackoff(str, Enum):
    """Delay policy applied when a failed plan is re-armed."""

    IMMEDIATE = "immediate"
    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class CadenceSettings(BaseSettings):
    """Cadence engine configuration.

    Fields
    ──────
    database_path            : SQLite file (``:memory:`` for ephemeral runs)
    timezone                 : Civil zone all plan dates and times live in
    tick_interval_seconds    : Scheduler poll interval
    max_concurrency          : Plans processed in parallel within one tick
    batch_size               : Due plans fetched per tick
    notifier_timeout_seconds : Upper bound on one notifier call
    retry_*                  : Automatic re-arm policy for failed plans
    claim_lease_seconds      : Age after which an executing claim is stale
    horizon_days             : Default materialization window length
    max_rule_complexity      : Compile-time complexity ceiling
    holiday_years            : Years loaded into the holiday calendar
    notifier                 : webhook | logging
    webhook_url              : Destination for tasks that have none of their own
    webhook_secret           : DingTalk signing secret
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: str = Field(default="cadence.db")

    # ── Calendar ─────────────────────────────────────────────────
    timezone: str = Field(default="Asia/Shanghai")
    holiday_years: list[int] = Field(default_factory=lambda: [2024, 2025])

    # ── Scheduler ────────────────────────────────────────────────
    scheduler_backend: SchedulerBackendType = Field(default=SchedulerBackendType.THREAD)
    tick_interval_seconds: float = Field(default=60.0, gt=0)
    max_concurrency: int = Field(default=8, ge=1)
    batch_size: int = Field(default=200, ge=1)
    notifier_timeout_seconds: float = Field(default=10.0, gt=0)
    claim_lease_seconds: int = Field(default=300, ge=1)

    # ── Retry ────────────────────────────────────────────────────
    retry_enabled: bool = Field(default=True)
    max_retries: int = Field(default=3, ge=0)
    retry_backoff: RetryBackoff = Field(default=RetryBackoff.EXPONENTIAL)
    retry_base_delay_seconds: float = Field(default=60.0, ge=0)
    retry_max_delay_seconds: float = Field(default=3600.0, ge=0)

    # ── Rules / plans ────────────────────────────────────────────
    horizon_days: int = Field(default=30, ge=1)
    max_rule_complexity: int = Field(default=100, ge=10)

    # ── Delivery ─────────────────────────────────────────────────
    notifier: NotifierType = Field(default=NotifierType.WEBHOOK)
    webhook_url: str | None = Field(default=None)
    webhook_secret: str | None = Field(default=None)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def _delay_bounds(self) -> CadenceSettings:
        if self.retry_max_delay_seconds < self.retry_base_delay_seconds:
            raise ValueError("retry_max_delay_seconds must be >= retry_base_delay_seconds")
        return self

    @cached_property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, CadenceSettings] = {}


def get_settings(*, _force_reload: bool = False) -> CadenceSettings:
    """Load, validate, and cache a :class:`CadenceSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = CadenceSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "CadenceSettings",
    "NotifierType",
    "RetryBackoff",
    "SchedulerBackendType",
    "clear_settings_cache",
    "get_settings",
]
