"""Task signal adapter selection — pluggable link to the external task board."""

import os

_signal_instance = None


def get_task_signal():
    """Return the configured task signal adapter (singleton).

    ``TASK_SIGNAL_ADAPTER`` selects the adapter: ``log`` (default) or
    ``recording``.
    """
    global _signal_instance
    if _signal_instance is None:
        adapter = os.environ.get("TASK_SIGNAL_ADAPTER", "log")
        if adapter == "log":
            from ledger.tasks.log_adapter import LogTaskSignal

            _signal_instance = LogTaskSignal()
        elif adapter == "recording":
            from ledger.tasks.recording_adapter import RecordingTaskSignal

            _signal_instance = RecordingTaskSignal()
        else:
            raise ValueError(f"Unknown task signal adapter: {adapter}")
    return _signal_instance


def use_task_signal(adapter):
    """Install a specific adapter instance (wiring and tests)."""
    global _signal_instance
    _signal_instance = adapter
    return adapter


def reset_task_signal():
    """Reset the task signal singleton (useful for testing)."""
    global _signal_instance
    _signal_instance = None
