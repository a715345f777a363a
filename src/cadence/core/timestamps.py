"""
ULID generation and civil-time utilities.

Plans live in one fixed civil calendar (the configured zone). Times are
persisted as naive ISO strings in that zone, ``YYYY-MM-DDTHH:MM:SS``, so
that lexical order equals chronological order and ``due_at <= now``
comparisons work in plain SQL on every dialect.

Features:
    - **generate_ulid():** Time-sortable unique IDs (26-char, base32)
    - **civil_now(tz):** Current wall-clock time in the zone, naive
    - **format_civil() / parse_civil():** Round-trip of the stored form
    - **combine_civil():** Date + time-of-day to the stored form

Tags:
    timestamps, ulid, civil-time, datetime, cadence
"""

import random
import time
from datetime import UTC, date, datetime, time as dtime
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def civil_now(tz: ZoneInfo) -> datetime:
    """Current wall-clock time in ``tz``, returned naive, second precision."""
    return datetime.now(tz).replace(tzinfo=None, microsecond=0)


def format_civil(dt: datetime | None) -> str | None:
    """Format a naive civil datetime as stored (``YYYY-MM-DDTHH:MM:SS``)."""
    if dt is None:
        return None
    return dt.replace(microsecond=0).isoformat(timespec="seconds")


def parse_civil(s: str | None) -> datetime | None:
    """Parse a stored civil timestamp; offsets, if present, are dropped."""
    if s is None:
        return None
    return datetime.fromisoformat(s).replace(tzinfo=None)


def combine_civil(day: date, at: dtime) -> str:
    """Civil timestamp for a plan slot."""
    return format_civil(datetime.combine(day, at))


def generate_ulid() -> str:
    """
    Generate a ULID-like identifier.

    Format: 26 characters, Crockford base32, time-sortable.
    """
    timestamp_ms = int(time.time() * 1000)
    timestamp_chars = _encode_base32(timestamp_ms, 10)
    random_part = "".join(random.choices(_ENCODING, k=16))
    return timestamp_chars + random_part


_ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ENCODING_LEN = len(_ENCODING)


def _encode_base32(value: int, length: int) -> str:
    result = []
    for _ in range(length):
        result.append(_ENCODING[value % _ENCODING_LEN])
        value //= _ENCODING_LEN
    return "".join(reversed(result))
