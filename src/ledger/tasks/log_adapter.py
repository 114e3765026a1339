"""Default task signal adapter — writes the signal to the structured log.

Deployments without a task service wired in still get a record of every
unblock signal that would have been sent.
"""

import structlog

from ledger.tasks.port import TaskSignalPort

logger = structlog.get_logger(__name__)


class LogTaskSignal(TaskSignalPort):
    def notify_material_available(self, task_id: str) -> None:
        logger.info("Material available for task", task_id=str(task_id))
