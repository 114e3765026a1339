import pytest
from ledger.sites.registry import register_site
from ledger.tasks import reset_task_signal, use_task_signal
from ledger.tasks.recording_adapter import RecordingTaskSignal

SITE_A = "site-harbour-view"
SITE_B = "site-riverside"
SITE_C = "site-northgate"


@pytest.fixture()
def sites():
    """Three active sites registered with fixed ids."""
    register_site("Harbour View Towers", site_id=SITE_A)
    register_site("Riverside Bridge", site_id=SITE_B)
    register_site("Northgate School", site_id=SITE_C)
    return {"a": SITE_A, "b": SITE_B, "c": SITE_C}


@pytest.fixture()
def task_signal():
    signal = use_task_signal(RecordingTaskSignal())
    yield signal
    reset_task_signal()


@pytest.fixture()
def fast_retry(monkeypatch):
    """Shrink lock timeouts and backoff so contention tests finish quickly."""
    monkeypatch.setenv("LEDGER_LOCK_TIMEOUT", "0.05")
    monkeypatch.setenv("LEDGER_RETRY_ATTEMPTS", "2")
    monkeypatch.setenv("LEDGER_RETRY_BASE_DELAY", "0.01")
