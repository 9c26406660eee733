"""Scheduler error taxonomy."""


class SchedulerError(Exception):
    """Base class for all scheduling errors."""


class InvalidSchedule(SchedulerError):
    """The requested send time violates the configured policy."""


class DuplicateTask(SchedulerError):
    """A live timer already exists for this task ID."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task '{task_id}' is already armed")
        self.task_id = task_id


class TaskNotFound(SchedulerError):
    """The task already fired, was already cancelled, or never existed."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task '{task_id}' not found")
        self.task_id = task_id


class DeliveryFailed(SchedulerError):
    """The notifier could not deliver a message."""


class RecoveryLoadFailed(SchedulerError):
    """A stored task could not be re-armed during recovery."""

    def __init__(self, task_id: str, reason: str) -> None:
        super().__init__(f"Could not recover task '{task_id}': {reason}")
        self.task_id = task_id
        self.reason = reason
