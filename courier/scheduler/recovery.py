"""Startup recovery — rebuild the timer registry from the task store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from courier.scheduler.errors import RecoveryLoadFailed
from courier.scheduler.models import TaskRecord

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from courier.scheduler.store import TaskStore

logger = logging.getLogger(__name__)

OverduePolicy = Literal["fire", "drop"]


@dataclass
class RecoveryReport:
    """Outcome of one recovery pass.

    ``armed`` includes overdue tasks re-armed for immediate firing.
    """

    armed: list[str] = field(default_factory=list)
    overdue: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    failed: list[RecoveryLoadFailed] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.armed) + len(self.dropped) + len(self.failed)


async def recover_tasks(
    store: TaskStore,
    arm: Callable[[TaskRecord], None],
    *,
    now: datetime,
    overdue_policy: OverduePolicy = "fire",
) -> RecoveryReport:
    """Re-arm every stored task.

    A row that cannot be parsed or armed is logged and skipped; its record
    stays in the store so nothing is lost silently. Overdue tasks are armed
    for immediate firing (``"fire"``) or deleted (``"drop"``).
    """
    report = RecoveryReport()

    for row in await store.list_rows():
        task_id = str(row[0])
        try:
            task = TaskRecord.from_row(row)
        except (ValueError, TypeError, IndexError) as exc:
            _skip(report, RecoveryLoadFailed(task_id, f"malformed record: {exc}"))
            continue

        if task.is_overdue(now):
            report.overdue.append(task.id)
            if overdue_policy == "drop":
                try:
                    await store.delete_task(task.id)
                except Exception as exc:
                    _skip(report, RecoveryLoadFailed(task.id, f"could not drop: {exc}"))
                    continue
                report.dropped.append(task.id)
                logger.warning(
                    "Dropped missed task %s (was due %s, recipient=%s)",
                    task.id,
                    task.fire_at.isoformat(),
                    task.recipient,
                )
                continue
            logger.info(
                "Task %s was due %s; firing now", task.id, task.fire_at.isoformat()
            )

        try:
            arm(task)
        except Exception as exc:
            _skip(report, RecoveryLoadFailed(task.id, str(exc)))
            continue
        report.armed.append(task.id)

    logger.info(
        "Recovery complete: %d task(s) seen, %d armed, %d overdue, %d dropped, %d failed",
        report.total,
        len(report.armed),
        len(report.overdue),
        len(report.dropped),
        len(report.failed),
    )
    return report


def _skip(report: RecoveryReport, error: RecoveryLoadFailed) -> None:
    logger.error("Skipping task during recovery: %s", error)
    report.failed.append(error)
