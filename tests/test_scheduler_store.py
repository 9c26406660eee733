"""Tests for TaskStore — aiosqlite persistence."""

from datetime import UTC, datetime, timedelta

import aiosqlite

from courier.scheduler.models import Attachment, TaskRecord
from courier.scheduler.store import TaskStore

BASE = datetime(2030, 6, 1, 9, 0, tzinfo=UTC)


def _make_task(task_id: str = "task1", **kwargs) -> TaskRecord:
    defaults = {
        "recipient": "ada@example.com",
        "subject": "Hello",
        "body": "Body text",
        "fire_at": BASE,
        "created_at": "2025-01-01T00:00:00+00:00",
    }
    defaults.update(kwargs)
    return TaskRecord(id=task_id, **defaults)


# -- add_task / get_task -------------------------------------------------------


async def test_add_and_get_task(store: TaskStore) -> None:
    await store.add_task(_make_task())

    fetched = await store.get_task("task1")
    assert fetched is not None
    assert fetched.recipient == "ada@example.com"
    assert fetched.fire_at == BASE
    assert fetched.attachment is None


async def test_attachment_round_trips(store: TaskStore) -> None:
    att = Attachment(filename="report.pdf", content=b"\x00\x01pdf", mime_type="application/pdf")
    await store.add_task(_make_task(attachment=att))

    fetched = await store.get_task("task1")
    assert fetched is not None
    assert fetched.attachment == att


async def test_get_task_not_found(store: TaskStore) -> None:
    assert await store.get_task("nonexistent") is None


async def test_creates_parent_directory(tmp_path) -> None:
    store = TaskStore(db_path=tmp_path / "nested" / "dir" / "tasks.db")
    await store.add_task(_make_task())
    assert store.db_path.exists()


# -- delete_task ---------------------------------------------------------------


async def test_delete_task(store: TaskStore) -> None:
    await store.add_task(_make_task())

    assert await store.delete_task("task1") is True
    assert await store.get_task("task1") is None
    assert await store.delete_task("task1") is False


async def test_delete_nonexistent_returns_false(store: TaskStore) -> None:
    assert await store.delete_task("nonexistent") is False


# -- list / count --------------------------------------------------------------


async def test_list_tasks_ordered_by_fire_at(store: TaskStore) -> None:
    await store.add_task(_make_task("late", fire_at=BASE + timedelta(hours=2)))
    await store.add_task(_make_task("early", fire_at=BASE))
    await store.add_task(_make_task("mid", fire_at=BASE + timedelta(hours=1)))

    tasks = await store.list_tasks()
    assert [t.id for t in tasks] == ["early", "mid", "late"]
    assert await store.count_tasks() == 3


async def test_list_empty(store: TaskStore) -> None:
    assert await store.list_tasks() == []
    assert await store.list_rows() == []
    assert await store.count_tasks() == 0


async def test_list_rows_returns_malformed_rows_unparsed(store: TaskStore) -> None:
    await store.add_task(_make_task("good"))
    async with aiosqlite.connect(str(store.db_path)) as db:
        await db.execute(
            "INSERT INTO scheduled_emails (id, recipient, subject, body, fire_at, created_at)"
            " VALUES ('bad', 'x@example.com', 's', 'b', 'garbage', '')"
        )
        await db.commit()

    rows = await store.list_rows()
    assert {row[0] for row in rows} == {"good", "bad"}


async def test_persists_across_instances(db_path) -> None:
    await TaskStore(db_path=db_path).add_task(_make_task())

    fetched = await TaskStore(db_path=db_path).get_task("task1")
    assert fetched is not None
    assert fetched.subject == "Hello"
