# src/task_agent/core/clock.py

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_ts(dt: datetime | None) -> float | None:
    """Aware datetime -> epoch seconds (storage format)."""
    return dt.timestamp() if dt is not None else None


def from_ts(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), UTC)


class SystemClock:
    def now(self) -> datetime:
        return utc_now()


class FrozenClock:
    """
    Manually driven clock for tests and replays.

    Time only moves when advance() or set() is called.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or utc_now()

    def now(self) -> datetime:
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        self._now = self._now + (delta if delta is not None else timedelta(**kwargs))
        return self._now
