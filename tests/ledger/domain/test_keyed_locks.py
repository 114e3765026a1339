"""Tests for per-key atomic units and bounded retry."""

import threading
import time

import pytest
from ledger.concurrency import KeyedLocks, atomic_unit, registry, run_atomic
from ledger.errors import Conflict, Timeout, TransientLedgerError


class TestKeyedLocks:
    def test_acquire_and_release(self):
        locks = KeyedLocks()
        held = locks.acquire(["a", "b"], timeout=0.1)
        assert locks.is_locked("a") and locks.is_locked("b")
        locks.release(held)
        assert not locks.is_locked("a")
        assert len(locks) == 0

    def test_held_key_conflicts(self):
        locks = KeyedLocks()
        held = locks.acquire(["a"], timeout=0.1)
        with pytest.raises(Conflict) as exc:
            locks.acquire(["a"], timeout=0.01)
        assert exc.value.keys == ("a",)
        locks.release(held)

    def test_failed_acquire_releases_partial_keys(self):
        locks = KeyedLocks()
        held = locks.acquire(["b"], timeout=0.1)
        with pytest.raises(Conflict):
            locks.acquire(["a", "b"], timeout=0.01)
        assert not locks.is_locked("a")
        locks.release(held)

    def test_disjoint_keys_do_not_block(self):
        locks = KeyedLocks()
        held = locks.acquire(["a"], timeout=0.1)
        other = locks.acquire(["b"], timeout=0.01)
        locks.release(other)
        locks.release(held)

    def test_duplicate_keys_are_taken_once(self):
        locks = KeyedLocks()
        held = locks.acquire(["a", "a"], timeout=0.1)
        assert len(held) == 1
        locks.release(held)

    def test_waiter_gets_key_after_release(self):
        locks = KeyedLocks()
        held = locks.acquire(["a"], timeout=0.1)
        acquired = []

        def waiter():
            acquired.append(locks.acquire(["a"], timeout=2.0))

        thread = threading.Thread(target=waiter)
        thread.start()
        time.sleep(0.05)
        locks.release(held)
        thread.join()
        locks.release(acquired[0])
        assert len(locks) == 0


class TestRunAtomic:
    def test_returns_operation_result(self):
        assert run_atomic(["k"], lambda: 42) == 42

    def test_terminal_errors_are_not_retried(self):
        calls = []

        def operation():
            calls.append(1)
            raise ValueError("boom")

        with pytest.raises(ValueError):
            run_atomic(["k"], operation)
        assert len(calls) == 1

    def test_contention_times_out(self, fast_retry):
        with atomic_unit("busy"):
            result = []

            def contender():
                try:
                    run_atomic(["busy"], lambda: "ran")
                except TransientLedgerError as exc:
                    result.append(exc)

            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert isinstance(result[0], Timeout)
        assert isinstance(result[0].__cause__, Conflict)

    def test_retry_succeeds_once_key_frees_up(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOCK_TIMEOUT", "0.02")
        monkeypatch.setenv("LEDGER_RETRY_ATTEMPTS", "10")
        monkeypatch.setenv("LEDGER_RETRY_BASE_DELAY", "0.01")

        held = registry().acquire(["slow"], timeout=0.1)
        timer = threading.Timer(0.05, registry().release, args=(held,))
        timer.start()
        try:
            assert run_atomic(["slow"], lambda: "done") == "done"
        finally:
            timer.join()

    def test_conflict_inside_operation_is_retried(self, fast_retry):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise Conflict("version moved")
            return "ok"

        assert run_atomic(["k"], flaky) == "ok"
        assert len(attempts) == 2
