"""Timestamps for ledger records."""

import threading
from datetime import UTC, datetime, timedelta

_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    return datetime.now(UTC)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def next_timestamp(previous: datetime | None) -> datetime:
    """Current time, nudged forward so it is strictly after ``previous``."""
    now = utc_now()
    if previous is None:
        return now
    previous = _aware(previous)
    if now <= previous:
        return previous + _TICK
    return now


class MonotonicStamp:
    """Hands out strictly increasing timestamps within this process."""

    def __init__(self):
        self._guard = threading.Lock()
        self._last = None

    def __call__(self) -> datetime:
        with self._guard:
            self._last = next_timestamp(self._last)
            return self._last
