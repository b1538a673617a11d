"""Timestamp helpers shared by artifact naming and execution directories."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

_MILLISECOND = timedelta(milliseconds=1)


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


def from_iso(value: str) -> datetime:
    """Parse ISO datetime and ensure timezone-aware UTC fallback."""

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision so names and timestamps agree."""

    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def format_timestamp(value: datetime) -> str:
    """Render ``YYYYMMDDTHHMMSS-mmm`` in UTC; lexicographic order equals time order."""

    value = value.astimezone(UTC)
    return f"{value:%Y%m%dT%H%M%S}-{value.microsecond // 1000:03d}"


def next_millisecond(value: datetime) -> datetime:
    return truncate_to_millis(value) + _MILLISECOND


class MonotonicClock:
    """Issues strictly increasing millisecond timestamps."""

    def __init__(self, now: Callable[[], datetime] = utc_now) -> None:
        self._now = now
        self._last: datetime | None = None

    def tick(self) -> datetime:
        current = truncate_to_millis(self._now())
        if self._last is not None and current <= self._last:
            current = self._last + _MILLISECOND
        self._last = current
        return current
