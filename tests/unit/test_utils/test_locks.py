"""Unit tests for KeyedLock."""
from __future__ import annotations

import asyncio

import pytest

from uptime_engine.utils.locks import KeyedLock


@pytest.mark.unit
async def test_same_key_is_serialized() -> None:
    locks = KeyedLock()
    order: list[str] = []

    async def work(name: str) -> None:
        async with locks.hold(1):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(work("a"), work("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


@pytest.mark.unit
async def test_different_keys_run_concurrently() -> None:
    locks = KeyedLock()
    inside = asyncio.Event()

    async def holder() -> None:
        async with locks.hold(1):
            inside.set()
            await asyncio.sleep(0.05)

    task = asyncio.create_task(holder())
    await inside.wait()

    assert len(locks) == 1

    async def other_key() -> None:
        async with locks.hold(2):
            pass

    # Would time out if key 2 waited on key 1
    await asyncio.wait_for(other_key(), timeout=0.02)
    assert not task.done()
    await task


@pytest.mark.unit
async def test_idle_keys_are_dropped() -> None:
    locks = KeyedLock()

    async with locks.hold("a"):
        assert len(locks) == 1
    assert len(locks) == 0


@pytest.mark.unit
async def test_released_on_error() -> None:
    locks = KeyedLock()

    with pytest.raises(RuntimeError):
        async with locks.hold(1):
            raise RuntimeError("boom")

    assert len(locks) == 0
