"""
Timestamp utilities (stdlib-only).

UTC-aware datetimes everywhere; durations measured on the monotonic clock.
"""

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Serialize a datetime to ISO-8601 (naive values are assumed UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse an ISO-8601 string; a trailing ``Z`` is accepted."""
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds, for measuring elapsed time."""
    return time.monotonic() * 1000


def elapsed_ms(start_ms: float) -> int:
    """Whole milliseconds since ``start_ms`` (a :func:`monotonic_ms` value)."""
    return max(0, int(monotonic_ms() - start_ms))
