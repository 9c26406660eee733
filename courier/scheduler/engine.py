"""SchedulerEngine — keeps timers and stored tasks in step."""

from __future__ import annotations

import functools
import logging
import zoneinfo
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from courier.config import settings
from courier.scheduler.errors import DeliveryFailed, InvalidSchedule, TaskNotFound
from courier.scheduler.models import TaskRecord, make_task_id, parse_fire_at
from courier.scheduler.recovery import recover_tasks
from courier.scheduler.registry import TimerRegistry

if TYPE_CHECKING:
    from collections.abc import Callable

    from courier.notifications.channels import Notifier
    from courier.scheduler.models import Attachment
    from courier.scheduler.recovery import OverduePolicy, RecoveryReport
    from courier.scheduler.store import TaskStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SchedulerEngine:
    """Owns the timer registry and keeps it consistent with the task store.

    Ordering rules:

    - create: persist the record, then arm. A crash in between is repaired
      by recovery on the next start.
    - cancel: disarm, then delete. A failed disarm means the timer has
      already fired (or never existed) and nothing is deleted.
    - fire: deliver once, then delete the record and drop the handle,
      whatever the delivery outcome.

    Args:
        store: TaskStore for persistence.
        notifier: Delivery backend invoked when a task fires.
        registry: TimerRegistry to own (a fresh one by default).
        timezone: IANA timezone applied to naive send times.
        past_due_policy: ``"reject"`` or ``"fire"`` for send times already
            in the past at request time.
        overdue_recovery_policy: ``"fire"`` or ``"drop"`` for stored tasks
            that came due while the process was down.
        clock: Returns the current aware datetime (for tests).
    """

    def __init__(
        self,
        store: TaskStore,
        notifier: Notifier,
        *,
        registry: TimerRegistry | None = None,
        timezone: str | None = None,
        past_due_policy: str | None = None,
        overdue_recovery_policy: OverduePolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._timezone = timezone or settings.scheduler_timezone
        self._tz = zoneinfo.ZoneInfo(self._timezone)
        self._registry = registry or TimerRegistry(timezone=self._timezone)
        self._past_due_policy = past_due_policy or settings.past_due_policy
        self._overdue_policy = overdue_recovery_policy or settings.overdue_recovery_policy
        self._clock = clock
        self._running = False
        self.last_recovery: RecoveryReport | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def registry(self) -> TimerRegistry:
        return self._registry

    def pending_ids(self) -> list[str]:
        """IDs of tasks that currently hold a live timer."""
        return self._registry.task_ids()

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Recover stored tasks, then start firing timers.

        Call before exposing schedule/cancel to callers so that recovery
        never races fresh requests.
        """
        if self._running:
            return
        self.last_recovery = await recover_tasks(
            self._store,
            self._arm,
            now=self._clock(),
            overdue_policy=self._overdue_policy,
        )
        self._registry.start()
        self._running = True
        logger.info(
            "Scheduler started with %d pending task(s) (tz=%s)",
            len(self._registry),
            self._timezone,
        )

    async def stop(self) -> None:
        """Stop firing timers. Stored tasks are kept for the next start."""
        if self._running:
            await self._registry.shutdown()
            self._running = False
            logger.info("Scheduler stopped")

    # -- Task management -------------------------------------------------------

    async def schedule(
        self,
        recipient: str,
        subject: str,
        body: str,
        fire_at: datetime | str,
        *,
        attachment: Attachment | None = None,
    ) -> str:
        """Persist and arm a new email. Returns the task ID.

        Raises InvalidSchedule for an unparseable send time, or for a past
        one when the past-due policy is ``"reject"``.
        """
        try:
            when = parse_fire_at(fire_at, self._tz)
        except ValueError as exc:
            raise InvalidSchedule(str(exc)) from exc

        now = self._clock()
        if when < now:
            if self._past_due_policy != "fire":
                msg = f"Send time {when.isoformat()} is in the past"
                raise InvalidSchedule(msg)
            logger.info("Send time %s already passed; sending now", when.isoformat())
            when = now

        task = TaskRecord(
            id=make_task_id(),
            recipient=recipient,
            subject=subject,
            body=body,
            fire_at=when,
            attachment=attachment,
        )
        await self._store.add_task(task)
        try:
            self._arm(task)
        except Exception:
            await self._store.delete_task(task.id)
            raise
        logger.info(
            "Scheduled task %s for %s (recipient=%s)",
            task.id,
            when.isoformat(),
            recipient,
        )
        return task.id

    async def cancel(self, task_id: str) -> bool:
        """Cancel a pending task. Returns True, or raises TaskNotFound."""
        if not self._registry.disarm(task_id):
            logger.info("Cancel rejected: task %s not pending", task_id)
            raise TaskNotFound(task_id)
        if not await self._store.delete_task(task_id):
            logger.warning("Cancelled task %s had no stored record", task_id)
        logger.info("Cancelled task %s", task_id)
        return True

    async def send_now(
        self,
        recipient: str,
        subject: str,
        body: str,
        *,
        attachment: Attachment | None = None,
    ) -> bool:
        """Deliver immediately without scheduling. Raises DeliveryFailed."""
        delivered = await self._notifier.send(
            recipient, subject, body, attachment=attachment
        )
        if not delivered:
            msg = f"Notifier declined delivery to {recipient}"
            raise DeliveryFailed(msg)
        return True

    # -- Internal --------------------------------------------------------------

    def _arm(self, task: TaskRecord) -> None:
        self._registry.arm(task.id, task.fire_at, functools.partial(self._fire, task))

    async def _fire(self, task: TaskRecord) -> None:
        """Timer callback: one delivery attempt, then cleanup exactly once."""
        logger.info("Firing task %s (recipient=%s)", task.id, task.recipient)
        try:
            delivered = await self._notifier.send(
                task.recipient,
                task.subject,
                task.body,
                attachment=task.attachment,
            )
        except DeliveryFailed as exc:
            logger.warning("Delivery failed for task %s: %s", task.id, exc)
        except Exception:
            logger.exception("Delivery raised for task %s", task.id)
        else:
            if delivered:
                logger.info("Delivered task %s", task.id)
            else:
                logger.warning("Delivery failed for task %s: notifier declined", task.id)
        finally:
            try:
                await self._store.delete_task(task.id)
            except Exception:
                logger.exception("Failed to delete fired task %s", task.id)
            self._registry.remove(task.id)
