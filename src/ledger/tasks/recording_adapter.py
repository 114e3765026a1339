"""Recording task signal adapter — keeps signals in memory for tests and local runs."""

import threading

from ledger.tasks.port import TaskSignalPort


class TaskSignalFailed(Exception):
    pass


class RecordingTaskSignal(TaskSignalPort):
    """Remembers every task id it was told about, in order."""

    def __init__(self):
        self._lock = threading.Lock()
        self.notified: list[str] = []
        self.should_succeed = True
        self.failure_reason = "Task service unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Task service unavailable"):
        """Make subsequent signals fail, to exercise error handling."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify_material_available(self, task_id: str) -> None:
        if not self.should_succeed:
            raise TaskSignalFailed(self.failure_reason)
        with self._lock:
            self.notified.append(str(task_id))

    def was_notified(self, task_id) -> bool:
        return str(task_id) in self.notified

    def clear(self):
        with self._lock:
            self.notified.clear()
