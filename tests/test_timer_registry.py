"""Tests for TimerRegistry — arm/disarm/remove and the fire/cancel race."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from courier.scheduler.errors import DuplicateTask
from courier.scheduler.registry import TimerRegistry

from .fakes import wait_until


def _in(seconds: float) -> datetime:
    return datetime.now(UTC) + timedelta(seconds=seconds)


@pytest.fixture
async def registry():
    r = TimerRegistry(timezone="UTC")
    r.start()
    yield r
    await r.shutdown()


async def test_arm_stores_handle(registry: TimerRegistry) -> None:
    registry.arm("t1", _in(60), AsyncMock())

    assert "t1" in registry
    assert len(registry) == 1
    assert registry.task_ids() == ["t1"]


async def test_arm_duplicate_raises(registry: TimerRegistry) -> None:
    registry.arm("t1", _in(60), AsyncMock())

    with pytest.raises(DuplicateTask) as exc_info:
        registry.arm("t1", _in(120), AsyncMock())
    assert exc_info.value.task_id == "t1"
    assert len(registry) == 1


async def test_callback_runs_at_fire_time(registry: TimerRegistry) -> None:
    callback = AsyncMock()
    registry.arm("t1", _in(0.1), callback)

    assert await wait_until(lambda: callback.await_count == 1)
    await asyncio.sleep(0.1)
    callback.assert_awaited_once_with()


async def test_past_fire_time_fires_immediately(registry: TimerRegistry) -> None:
    callback = AsyncMock()
    registry.arm("t1", _in(-30), callback)

    assert await wait_until(lambda: callback.await_count == 1)


async def test_disarm_pending_succeeds_once(registry: TimerRegistry) -> None:
    callback = AsyncMock()
    registry.arm("t1", _in(0.2), callback)

    assert registry.disarm("t1") is True
    assert registry.disarm("t1") is False
    assert "t1" not in registry

    await asyncio.sleep(0.4)
    callback.assert_not_awaited()


async def test_disarm_unknown_returns_false(registry: TimerRegistry) -> None:
    assert registry.disarm("nope") is False


async def test_disarm_while_firing_fails(registry: TimerRegistry) -> None:
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_callback() -> None:
        started.set()
        await release.wait()

    registry.arm("t1", _in(0.05), slow_callback)
    await asyncio.wait_for(started.wait(), timeout=3)

    # In flight: cancellation must lose the race, and the handle stays
    # until the owner removes it.
    assert registry.disarm("t1") is False
    assert "t1" in registry
    with pytest.raises(DuplicateTask):
        registry.arm("t1", _in(60), AsyncMock())

    release.set()
    registry.remove("t1")
    assert "t1" not in registry


async def test_remove_is_unconditional(registry: TimerRegistry) -> None:
    registry.arm("t1", _in(60), AsyncMock())
    registry.remove("t1")
    registry.remove("t1")
    registry.remove("never-armed")
    assert len(registry) == 0


async def test_failing_callback_releases_handle(registry: TimerRegistry) -> None:
    callback = AsyncMock(side_effect=RuntimeError("boom"))
    registry.arm("t1", _in(0.05), callback)

    assert await wait_until(lambda: callback.await_count == 1 and "t1" not in registry)


async def test_jobs_armed_before_start_fire_after_start() -> None:
    registry = TimerRegistry(timezone="UTC")
    callback = AsyncMock()
    registry.arm("t1", _in(-1), callback)
    assert registry.running is False
    try:
        registry.start()
        assert await wait_until(lambda: callback.await_count == 1)
    finally:
        await registry.shutdown()


async def test_disarm_before_start() -> None:
    registry = TimerRegistry(timezone="UTC")
    callback = AsyncMock()
    registry.arm("t1", _in(0.05), callback)
    assert registry.disarm("t1") is True
    try:
        registry.start()
        await asyncio.sleep(0.2)
        callback.assert_not_awaited()
    finally:
        await registry.shutdown()


async def test_shutdown_drops_handles(registry: TimerRegistry) -> None:
    registry.arm("t1", _in(60), AsyncMock())
    await registry.shutdown()
    assert len(registry) == 0
    assert registry.running is False


async def test_restart_after_shutdown_fires_new_timers() -> None:
    registry = TimerRegistry(timezone="UTC")
    callback = AsyncMock()
    registry.start()
    await registry.shutdown()
    assert registry.running is False

    registry.start()
    try:
        registry.arm("t1", _in(0.1), callback)
        assert await wait_until(lambda: callback.await_count == 1)
    finally:
        await registry.shutdown()
