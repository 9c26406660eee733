"""TimerRegistry — the process-local map of armed, cancellable timers.

Each task ID maps to one APScheduler ``DateTrigger`` job. The map is guarded
by a single lock so that a cancellation racing against the job's own firing
resolves to exactly one winner:

- the firing path marks the handle as *firing* under the lock before the
  callback runs, after which ``disarm()`` reports failure;
- ``disarm()`` drops a pending handle under the lock, after which the firing
  path finds nothing and returns without calling back.

Callbacks run outside the lock, so a slow delivery never blocks arming or
disarming other tasks.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from courier.scheduler.errors import DuplicateTask

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass
class _TimerHandle:
    callback: Callable[[], Awaitable[None]]
    fire_at: datetime
    firing: bool = False


class TimerRegistry:
    """Lock-guarded mapping from task ID to a pending APScheduler job.

    Args:
        timezone: IANA timezone string for the underlying scheduler.
    """

    def __init__(self, timezone: str = "UTC") -> None:
        self._scheduler = AsyncIOScheduler(timezone=timezone)
        self._handles: dict[str, _TimerHandle] = {}
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def task_ids(self) -> list[str]:
        """IDs with a live handle (pending or currently firing)."""
        with self._lock:
            return list(self._handles)

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Start the underlying scheduler. Must be called from the event loop."""
        if not self._scheduler.running:
            self._scheduler.start()

    async def shutdown(self) -> None:
        """Stop firing timers. Pending handles are dropped; nothing is persisted."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            # AsyncIOScheduler defers shutdown to the next loop iteration.
            await asyncio.sleep(0)
        with self._lock:
            self._handles.clear()

    # -- Arm / disarm ----------------------------------------------------------

    def arm(
        self,
        task_id: str,
        fire_at: datetime,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        """Schedule *callback* to run at *fire_at* under *task_id*.

        A *fire_at* in the past fires as soon as the scheduler runs.
        Raises DuplicateTask if *task_id* already has a live handle.
        """
        with self._lock:
            if task_id in self._handles:
                raise DuplicateTask(task_id)
            self._scheduler.add_job(
                self._dispatch,
                trigger=DateTrigger(run_date=fire_at),
                id=task_id,
                name=f"email:{task_id}",
                args=[task_id],
                misfire_grace_time=None,
            )
            self._handles[task_id] = _TimerHandle(callback=callback, fire_at=fire_at)
        logger.debug("Armed timer %s for %s", task_id, fire_at.isoformat())

    def disarm(self, task_id: str) -> bool:
        """Prevent a pending firing.

        Returns True if the timer was pending and is now cancelled, False if
        it is already firing, has fired, or never existed.
        """
        with self._lock:
            handle = self._handles.get(task_id)
            if handle is None or handle.firing:
                return False
            del self._handles[task_id]
        try:
            self._scheduler.remove_job(task_id)
        except JobLookupError:
            # The job was already handed to the executor; _dispatch will see
            # the missing handle and skip the callback.
            logger.debug("Job %s already left the job store", task_id)
        logger.debug("Disarmed timer %s", task_id)
        return True

    def remove(self, task_id: str) -> None:
        """Drop the handle for *task_id*, if any. A running callback is unaffected."""
        with self._lock:
            self._handles.pop(task_id, None)

    # -- Internal --------------------------------------------------------------

    async def _dispatch(self, task_id: str) -> None:
        """Job function invoked by APScheduler when a timer elapses."""
        with self._lock:
            handle = self._handles.get(task_id)
            if handle is None or handle.firing:
                return
            handle.firing = True
        try:
            await handle.callback()
        except Exception:
            logger.exception("Timer callback failed for task %s", task_id)
            with self._lock:
                if self._handles.get(task_id) is handle:
                    del self._handles[task_id]
