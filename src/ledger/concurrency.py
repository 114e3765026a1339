"""Per-key atomic units with bounded retry.

Every ledger mutation names the keys it touches (one stock record for a
receipt, two for a transfer, a request set for request transitions) and runs
while holding exactly those keys. Operations on disjoint keys never wait on
each other; operations sharing a key are serialized in acquisition order.

Keys are always acquired in sorted order under a single deadline, so two
units that share several keys cannot deadlock. A unit that cannot take its
keys before the deadline fails with ``Conflict``; ``run_atomic`` retries
those with exponential backoff and gives up with ``Timeout``.
"""

import os
import threading
import time
from contextlib import contextmanager

import structlog
from protean.exceptions import ExpectedVersionError

from ledger.errors import Conflict, Timeout

logger = structlog.get_logger(__name__)

DEFAULT_LOCK_TIMEOUT = 2.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 0.05


def lock_timeout() -> float:
    return float(os.environ.get("LEDGER_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT))


def retry_attempts() -> int:
    return max(1, int(os.environ.get("LEDGER_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS)))


def retry_base_delay() -> float:
    return float(os.environ.get("LEDGER_RETRY_BASE_DELAY", DEFAULT_RETRY_BASE_DELAY))


class _KeyLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLocks:
    """Registry of one lock per key, dropped once nobody references it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, _KeyLock] = {}

    def _checkout(self, key: str) -> _KeyLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.holders += 1
            return entry

    def _checkin(self, key: str, entry: _KeyLock) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    def acquire(self, keys, timeout: float) -> list[tuple[str, _KeyLock]]:
        """Take every key or none of them.

        Raises ``Conflict`` if any key is still held by someone else when the
        deadline passes; keys taken so far are released first.
        """
        deadline = time.monotonic() + timeout
        held: list[tuple[str, _KeyLock]] = []
        for key in sorted(set(keys)):
            entry = self._checkout(key)
            remaining = max(0.0, deadline - time.monotonic())
            if not entry.lock.acquire(timeout=remaining):
                self._checkin(key, entry)
                self.release(held)
                raise Conflict(f"Could not acquire ledger key {key} within {timeout}s", keys=keys)
            held.append((key, entry))
        return held

    def release(self, held) -> None:
        for key, entry in reversed(held):
            entry.lock.release()
            self._checkin(key, entry)

    def is_locked(self, key: str) -> bool:
        with self._guard:
            entry = self._locks.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self):
        with self._guard:
            return len(self._locks)


_registry = KeyedLocks()


def registry() -> KeyedLocks:
    return _registry


@contextmanager
def atomic_unit(*keys, timeout: float | None = None):
    """Hold ``keys`` for the duration of the block."""
    held = _registry.acquire(keys, lock_timeout() if timeout is None else timeout)
    try:
        yield
    finally:
        _registry.release(held)


def run_atomic(keys, operation):
    """Run ``operation()`` inside an atomic unit over ``keys``, retrying contention.

    Only ``Conflict`` (and optimistic-concurrency failures from the
    repository, which are reported as ``Conflict``) is retried. Any other
    exception propagates immediately. When every attempt conflicts the call
    fails with ``Timeout`` and nothing the operation would have written is
    visible.
    """
    keys = tuple(keys)
    attempts = retry_attempts()
    base_delay = retry_base_delay()
    last_error = None

    for attempt in range(1, attempts + 1):
        try:
            with atomic_unit(*keys):
                try:
                    return operation()
                except ExpectedVersionError as exc:
                    raise Conflict(str(exc), keys=keys) from exc
        except Conflict as exc:
            last_error = exc
            if attempt == attempts:
                break
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                "Ledger key contention, retrying",
                keys=list(keys),
                attempt=attempt,
                delay=delay,
            )
            time.sleep(delay)

    logger.error("Ledger operation timed out", keys=list(keys), attempts=attempts)
    raise Timeout(f"Ledger operation did not complete after {attempts} attempts", keys=keys) from last_error
