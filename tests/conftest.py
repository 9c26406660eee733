"""Shared test fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from courier.scheduler.engine import SchedulerEngine
from courier.scheduler.store import TaskStore

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
async def store(db_path: Path) -> TaskStore:
    """Create a TaskStore backed by a temp database."""
    return TaskStore(db_path=db_path)


@pytest.fixture
def notifier() -> AsyncMock:
    n = AsyncMock()
    n.send = AsyncMock(return_value=True)
    return n


@pytest.fixture
async def engine(store: TaskStore, notifier: AsyncMock):
    """A started engine; stopped again after the test."""
    e = SchedulerEngine(
        store=store,
        notifier=notifier,
        timezone="UTC",
        past_due_policy="reject",
        overdue_recovery_policy="fire",
    )
    await e.start()
    yield e
    await e.stop()
