"""Scheduled email engine: persistence, timers and startup recovery."""

from courier.scheduler.engine import SchedulerEngine
from courier.scheduler.errors import (
    DeliveryFailed,
    DuplicateTask,
    InvalidSchedule,
    RecoveryLoadFailed,
    SchedulerError,
    TaskNotFound,
)
from courier.scheduler.models import Attachment, TaskRecord
from courier.scheduler.recovery import RecoveryReport, recover_tasks
from courier.scheduler.registry import TimerRegistry
from courier.scheduler.store import TaskStore

__all__ = [
    "Attachment",
    "TaskRecord",
    "TaskStore",
    "TimerRegistry",
    "SchedulerEngine",
    "RecoveryReport",
    "recover_tasks",
    "SchedulerError",
    "InvalidSchedule",
    "DuplicateTask",
    "TaskNotFound",
    "DeliveryFailed",
    "RecoveryLoadFailed",
]
