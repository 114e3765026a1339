"""Task signal port — tells the task board that material for a task has arrived.

The ledger only announces availability; what the task component does with it
(clearing a "blocked on material" flag, notifying the crew) is its own
business. Adapters are swapped via configuration.
"""

from abc import ABC, abstractmethod


class TaskSignalPort(ABC):
    @abstractmethod
    def notify_material_available(self, task_id: str) -> None:
        """Signal that a request linked to ``task_id`` has just been delivered.

        Sent at most once per task per allocation run. Other requests raised
        for the same task may still be waiting on stock.
        """
        ...
