"""
Rule compiler: raw recurrence description → canonical ScheduleRule.

Manifesto:
    Authoring UIs send loosely shaped payloads (camelCase or snake_case,
    partially filled sub-modes, times with or without seconds). The
    compiler is the single gate between that input and the engine: it
    reports every problem at once and emits a canonical, immutable rule
    that the generator can trust without re-checking.

Architecture:
    ::

        raw mapping
            │
            ▼
        RawRule + sections          key aliases and shapes (pydantic);
            │                       each section validated on its own
            ▼
        semantic checks             both steps accumulate "path: message"
            │   any errors ───────► RuleValidationError(errors=[...])
            ▼
        canonicalize                months 1..12, sorted unique times,
            │                       deduplicated day / weekday sets
            ▼
        complexity guard            score > max_complexity → error
            │
            ▼
        ScheduleRule

    Compilation is pure: no I/O, no clock, no calendar lookups.

Examples:
    >>> rule = RuleCompiler().compile({
    ...     "ruleType": "by_week",
    ...     "weekMode": {"weekdays": [5], "occurrence": "third"},
    ...     "executionTimes": ["09:00", "09:00", "18:00"],
    ... })
    >>> [t.isoformat() for t in rule.execution_times]
    ['09:00:00', '18:00:00']
    >>> sorted(rule.months) == list(range(1, 13))
    True

Tags:
    cadence, rules, compiler, validation, pydantic, canonicalization

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime, time
from typing import Any, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from cadence.core.errors import RuleValidationError
from cadence.rules.models import (
    ALL_MONTHS,
    DayMode,
    DayModeKind,
    Exclusions,
    IntervalMode,
    IntervalUnit,
    RuleType,
    ScheduleRule,
    WeekMode,
    WeekOccurrence,
)

DEFAULT_MAX_COMPLEXITY = 100

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


# ---------------------------------------------------------------------------
# Envelope models
# ---------------------------------------------------------------------------


class RawDayMode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Any = Field(default=None, validation_alias=AliasChoices("type", "mode"))
    days: Any = Field(default=None, validation_alias=AliasChoices("days", "values"))
    nth: Any = Field(default=None, validation_alias=AliasChoices("nth", "nthDay", "nth_day", "n"))


class RawWeekMode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    weekdays: Any = Field(default=None, validation_alias=AliasChoices("weekdays", "weekDays"))
    occurrence: Any = Field(default=None)


class RawIntervalMode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: Any = Field(default=None, validation_alias=AliasChoices("value", "interval"))
    unit: Any = Field(default=None)
    reference_date: Any = Field(
        default=None,
        validation_alias=AliasChoices("reference_date", "referenceDate", "startDate"),
    )


class RawExclusions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    exclude_holidays: bool | None = Field(
        default=None, validation_alias=AliasChoices("exclude_holidays", "excludeHolidays")
    )
    exclude_weekends: bool | None = Field(
        default=None, validation_alias=AliasChoices("exclude_weekends", "excludeWeekends")
    )
    specific_dates: Any = Field(
        default=None, validation_alias=AliasChoices("specific_dates", "specificDates")
    )


class RawRule(BaseModel):
    """Envelope of an authored rule.

    Sub-modes and exclusions stay untyped here and are validated one by one,
    so a malformed section does not hide problems elsewhere in the rule.
    Exclusion flags are accepted at the top level (as web forms send them)
    or nested under ``exclusions``; nested values win.
    """

    model_config = ConfigDict(extra="ignore")

    rule_type: Any = Field(default=None, validation_alias=AliasChoices("rule_type", "ruleType"))
    months: Any = Field(default=None)
    day_mode: Any = Field(
        default=None, validation_alias=AliasChoices("day_mode", "dayMode")
    )
    week_mode: Any = Field(
        default=None, validation_alias=AliasChoices("week_mode", "weekMode")
    )
    interval_mode: Any = Field(
        default=None, validation_alias=AliasChoices("interval_mode", "intervalMode", "interval_config")
    )
    execution_times: Any = Field(
        default=None, validation_alias=AliasChoices("execution_times", "executionTimes")
    )
    reference_date: Any = Field(
        default=None, validation_alias=AliasChoices("reference_date", "referenceDate")
    )
    exclusions: Any = Field(default=None)


# ---------------------------------------------------------------------------
# Field parsers (append to ``errors`` and return None on failure)
# ---------------------------------------------------------------------------


M = TypeVar("M", bound=BaseModel)


def _section(model: type[M], value: Any, path: str, errors: list[str]) -> M | None:
    """Validate one section of the rule; pydantic errors are recorded under ``path``."""
    try:
        return model.model_validate(value)
    except PydanticValidationError as exc:
        for err in exc.errors():
            where = ".".join([path, *(str(part) for part in err["loc"])]).strip(".")
            errors.append(f"{where or 'rule'}: {err['msg']}")
        return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int_set(
    values: Any, path: str, low: int, high: int, errors: list[str], *, required: bool
) -> frozenset[int] | None:
    if values is None or (isinstance(values, (list, tuple, set, frozenset)) and not values):
        if required:
            errors.append(f"{path}: at least one value is required")
        return None
    if not isinstance(values, (list, tuple, set, frozenset)):
        errors.append(f"{path}: must be a list of integers")
        return None
    result: set[int] = set()
    for i, value in enumerate(values):
        if not _is_int(value) or not low <= value <= high:
            errors.append(f"{path}[{i}]: {value!r} is not an integer in {low}..{high}")
            continue
        result.add(value)
    return frozenset(result)


def parse_time(value: Any) -> time | None:
    """Parse ``HH:MM`` / ``HH:MM:SS`` (or pass a ``time`` through); None if invalid."""
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        return None
    match = _TIME_RE.match(value.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return time(hour, minute, second)


def parse_date(value: Any) -> date | None:
    """Parse an ISO ``YYYY-MM-DD`` date (or pass a ``date`` through); None if invalid."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _times(values: Any, errors: list[str]) -> tuple[time, ...] | None:
    if isinstance(values, str):
        values = [values]
    if not values or not isinstance(values, (list, tuple)):
        errors.append("execution_times: at least one time of day is required")
        return None
    parsed: set[time] = set()
    for i, value in enumerate(values):
        at = parse_time(value)
        if at is None:
            errors.append(f"execution_times[{i}]: {value!r} is not a valid HH:MM[:SS] time")
            continue
        parsed.add(at)
    return tuple(sorted(parsed))


def _dates(values: Any, path: str, errors: list[str]) -> frozenset[date]:
    if not values:
        return frozenset()
    if not isinstance(values, (list, tuple, set, frozenset)):
        errors.append(f"{path}: must be a list of YYYY-MM-DD dates")
        return frozenset()
    result: set[date] = set()
    for i, value in enumerate(values):
        day = parse_date(value)
        if day is None:
            errors.append(f"{path}[{i}]: {value!r} is not a valid YYYY-MM-DD date")
            continue
        result.add(day)
    return frozenset(result)


def _enum(enum_cls: type, value: Any, path: str, errors: list[str]) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        errors.append(f"{path}: {value!r} is not one of {allowed}")
        return None


# ---------------------------------------------------------------------------
# Sub-mode compilation
# ---------------------------------------------------------------------------


def _day_mode(raw: RawDayMode, errors: list[str]) -> DayMode | None:
    if raw.type is None:
        errors.append("day_mode.type: required")
        return None
    kind = _enum(DayModeKind, raw.type, "day_mode.type", errors)
    if kind is None:
        return None
    if kind is DayModeKind.SPECIFIC_DAYS:
        days = _int_set(raw.days, "day_mode.days", 1, 31, errors, required=True)
        return DayMode(kind, days=days) if days else None
    if kind is DayModeKind.NTH_WORKDAY:
        if not _is_int(raw.nth) or raw.nth < 1:
            errors.append(f"day_mode.nth: {raw.nth!r} must be an integer >= 1")
            return None
        return DayMode(kind, nth=raw.nth)
    return DayMode(kind)


def _week_mode(raw: RawWeekMode, errors: list[str]) -> WeekMode | None:
    weekdays = _int_set(raw.weekdays, "week_mode.weekdays", 1, 7, errors, required=True)
    occurrence = _enum(
        WeekOccurrence, raw.occurrence or WeekOccurrence.EVERY.value, "week_mode.occurrence", errors
    )
    if not weekdays or occurrence is None:
        return None
    return WeekMode(weekdays=weekdays, occurrence=occurrence)


def _interval_mode(raw: RawIntervalMode, fallback_reference: Any, errors: list[str]) -> IntervalMode | None:
    ok = True
    if not _is_int(raw.value) or raw.value < 1:
        errors.append(f"interval_mode.value: {raw.value!r} must be an integer >= 1")
        ok = False
    unit = _enum(IntervalUnit, raw.unit, "interval_mode.unit", errors)
    reference_raw = raw.reference_date if raw.reference_date is not None else fallback_reference
    reference = parse_date(reference_raw)
    if reference_raw is None:
        errors.append("interval_mode.reference_date: required")
    elif reference is None:
        errors.append(f"interval_mode.reference_date: {reference_raw!r} is not a valid YYYY-MM-DD date")
    if not ok or unit is None or reference is None:
        return None
    return IntervalMode(value=raw.value, unit=unit, reference_date=reference)


_MODE_FIELDS = {
    RuleType.BY_DAY: "day_mode",
    RuleType.BY_WEEK: "week_mode",
    RuleType.BY_INTERVAL: "interval_mode",
}


# ---------------------------------------------------------------------------
# Complexity
# ---------------------------------------------------------------------------


def complexity_score(rule: ScheduleRule) -> int:
    """Heuristic cost of a rule; ``compile`` rejects rules above the limit.

    Base 10; by_day +20 (+15 more for last_workday); by_week +15;
    by_interval +25 (+10 more for month units); +5 per execution time;
    +10 when the rule is restricted to fewer than 12 months.
    """
    score = 10
    mode = rule.mode
    if isinstance(mode, DayMode):
        score += 20
        if mode.kind is DayModeKind.LAST_WORKDAY:
            score += 15
    elif isinstance(mode, WeekMode):
        score += 15
    elif isinstance(mode, IntervalMode):
        score += 25
        if mode.unit is IntervalUnit.MONTHS:
            score += 10
    score += 5 * len(rule.execution_times)
    if len(rule.months) < 12:
        score += 10
    return score


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


class RuleCompiler:
    """Validates and canonicalizes authored recurrence rules.

    Args:
        max_complexity: Upper bound for :func:`complexity_score`.
    """

    def __init__(self, max_complexity: int = DEFAULT_MAX_COMPLEXITY) -> None:
        self.max_complexity = max_complexity

    def compile(self, raw: Mapping[str, Any] | ScheduleRule) -> ScheduleRule:
        """Compile ``raw`` or raise :class:`RuleValidationError` listing every problem."""
        if isinstance(raw, ScheduleRule):
            raw = raw.to_dict()
        if not isinstance(raw, Mapping):
            raise RuleValidationError([f"rule: expected a mapping, got {type(raw).__name__}"])

        errors: list[str] = []
        envelope = _section(RawRule, dict(raw), "", errors) or RawRule()

        rule_type = None
        if envelope.rule_type is None:
            errors.append("rule_type: required")
        else:
            rule_type = _enum(RuleType, envelope.rule_type, "rule_type", errors)

        months = _int_set(envelope.months, "months", 1, 12, errors, required=False)
        times = _times(envelope.execution_times, errors)
        exclusions = self._exclusions(raw, envelope, errors)

        mode = None
        if rule_type is not None:
            mode = self._mode(rule_type, envelope, errors)

        if errors:
            raise RuleValidationError(errors)

        rule = ScheduleRule(
            mode=mode,
            execution_times=times,
            months=months or ALL_MONTHS,
            exclusions=exclusions,
        )

        score = complexity_score(rule)
        if score > self.max_complexity:
            raise RuleValidationError([
                f"rule: complexity score {score} exceeds the maximum of {self.max_complexity}"
            ])
        return rule

    def _mode(self, rule_type: RuleType, envelope: RawRule, errors: list[str]):
        active = _MODE_FIELDS[rule_type]
        for other_type, other_field in _MODE_FIELDS.items():
            if other_type is not rule_type and getattr(envelope, other_field) is not None:
                errors.append(f"{other_field}: must be empty when rule_type is {rule_type.value}")

        raw_mode = getattr(envelope, active)
        if raw_mode is None:
            errors.append(f"{active}: required when rule_type is {rule_type.value}")
            return None
        if rule_type is RuleType.BY_DAY:
            section = _section(RawDayMode, raw_mode, active, errors)
            return None if section is None else _day_mode(section, errors)
        if rule_type is RuleType.BY_WEEK:
            section = _section(RawWeekMode, raw_mode, active, errors)
            return None if section is None else _week_mode(section, errors)
        section = _section(RawIntervalMode, raw_mode, active, errors)
        return None if section is None else _interval_mode(section, envelope.reference_date, errors)

    def _exclusions(self, raw: Mapping[str, Any], envelope: RawRule, errors: list[str]) -> Exclusions:
        top = _section(RawExclusions, dict(raw), "", errors) or RawExclusions()
        nested = RawExclusions()
        if envelope.exclusions is not None:
            nested = _section(RawExclusions, envelope.exclusions, "exclusions", errors) or nested

        def pick(name: str) -> Any:
            value = getattr(nested, name)
            return value if value is not None else getattr(top, name)

        path = "exclusions.specific_dates" if nested.specific_dates is not None else "specific_dates"
        return Exclusions(
            exclude_holidays=bool(pick("exclude_holidays")),
            exclude_weekends=bool(pick("exclude_weekends")),
            specific_dates=_dates(pick("specific_dates"), path, errors),
        )


def compile_rule(raw: Mapping[str, Any], *, max_complexity: int = DEFAULT_MAX_COMPLEXITY) -> ScheduleRule:
    """Module-level shortcut for ``RuleCompiler(max_complexity).compile(raw)``."""
    return RuleCompiler(max_complexity).compile(raw)


__all__ = [
    "DEFAULT_MAX_COMPLEXITY",
    "RawRule",
    "RuleCompiler",
    "compile_rule",
    "complexity_score",
    "parse_date",
    "parse_time",
]
