"""TaskStore — aiosqlite persistence for scheduled emails."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiosqlite

from courier.config import settings
from courier.scheduler.models import TaskRecord

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS scheduled_emails (
    id TEXT PRIMARY KEY,
    recipient TEXT NOT NULL,
    subject TEXT NOT NULL,
    body TEXT NOT NULL,
    fire_at TEXT NOT NULL,
    attachment_name TEXT,
    attachment_type TEXT,
    attachment BLOB,
    created_at TEXT NOT NULL
)
"""

_COLUMNS = (
    "id, recipient, subject, body, fire_at,"
    " attachment_name, attachment_type, attachment, created_at"
)


class TaskStore:
    """Persists scheduled emails in SQLite.

    Records are insert-once and delete-once; there is no update path.
    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    # -- CRUD ------------------------------------------------------------------

    async def add_task(self, task: TaskRecord) -> TaskRecord:
        """Insert a new task. Returns the same task object."""
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO scheduled_emails ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                task.to_row(),
            )
            await db.commit()
            logger.debug("Stored task %s (fire_at=%s)", task.id, task.fire_at.isoformat())
            return task
        finally:
            await db.close()

    async def get_task(self, task_id: str) -> TaskRecord | None:
        """Fetch a task by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM scheduled_emails WHERE id = ?", (task_id,)
            )
            row = await cursor.fetchone()
            return TaskRecord.from_row(row) if row else None
        finally:
            await db.close()

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task. Returns True if a row was removed."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "DELETE FROM scheduled_emails WHERE id = ?", (task_id,)
            )
            await db.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.debug("Deleted task %s", task_id)
            return deleted
        finally:
            await db.close()

    async def list_rows(self) -> list[tuple]:
        """Return every stored row, unparsed, ordered by send time."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM scheduled_emails ORDER BY fire_at, created_at"
            )
            return list(await cursor.fetchall())
        finally:
            await db.close()

    async def list_tasks(self) -> list[TaskRecord]:
        """Return all stored tasks. Raises ValueError on a malformed row."""
        return [TaskRecord.from_row(row) for row in await self.list_rows()]

    async def count_tasks(self) -> int:
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT COUNT(*) FROM scheduled_emails")
            (count,) = await cursor.fetchone()
            return int(count)
        finally:
            await db.close()
