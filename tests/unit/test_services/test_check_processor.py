"""Unit tests for CheckProcessor: state cache, persistence and incident hand-off."""
from __future__ import annotations

import asyncio

import pytest

from helpers import at, fail, make_channel, make_monitor, ok
from uptime_engine.schemas.incident import IncidentStatus
from uptime_engine.schemas.monitor import MonitorStatus
from uptime_engine.utils.exceptions import StorageError


@pytest.mark.unit
async def test_down_then_recovery_opens_and_resolves(store, processor, incidents, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    monitor = store.add_monitor(make_monitor(1, recovery_window_seconds=60))

    await processor.process(monitor, ok(1, 0))
    await processor.process(monitor, fail(1, 60))
    incident = await incidents.get_open_incident(1)
    assert incident is not None
    assert incident.started_at == at(60)

    await processor.process(monitor, ok(1, 120))
    assert (await incidents.get_open_incident(1)) is not None

    await processor.process(monitor, ok(1, 180))
    await processor.flush()
    await dispatcher.drain()

    assert await incidents.get_open_incident(1) is None
    assert (await store.get_incident(incident.id)).status == IncidentStatus.RESOLVED
    assert [p.kind.value for _, p in sent] == ["opened", "resolved"]
    assert len(store.check_results) == 4


@pytest.mark.unit
async def test_cached_state_wins_over_stored_state(store, processor) -> None:
    monitor = store.add_monitor(make_monitor(1, confirmation_threshold=2))

    await processor.process(monitor, fail(1, 0))
    # A stale config read still carries consecutive_failures=0
    stale_read = await store.get_monitor(1)
    stale_read.consecutive_failures = 0
    await processor.process(stale_read, fail(1, 60))

    state = processor.cached_state(1)
    assert state.consecutive_failures == 2
    assert state.current_status == MonitorStatus.UNKNOWN


@pytest.mark.unit
async def test_config_changes_apply_to_next_result(store, processor) -> None:
    monitor = store.add_monitor(make_monitor(1, confirmation_threshold=5, current_status=MonitorStatus.UP))
    await processor.process(monitor, fail(1, 0))

    updated = make_monitor(1, confirmation_threshold=0)
    await processor.process(updated, fail(1, 60))

    assert processor.cached_state(1).current_status == MonitorStatus.DOWN


@pytest.mark.unit
async def test_state_is_persisted(store, processor) -> None:
    monitor = store.add_monitor(make_monitor(1))
    await processor.process(monitor, fail(1, 0))

    stored = await store.get_monitor(1)
    assert stored.current_status == MonitorStatus.DOWN
    assert stored.consecutive_failures == 1
    assert stored.last_checked_at == at(0)


@pytest.mark.unit
async def test_stale_result_is_not_persisted(store, processor) -> None:
    monitor = store.add_monitor(make_monitor(1))
    await processor.process(monitor, ok(1, 60))
    evaluation = await processor.process(monitor, fail(1, 30))
    await processor.flush()

    assert evaluation.accepted is False
    assert len(store.check_results) == 1


@pytest.mark.unit
async def test_state_write_failure_keeps_cache(store, processor, monkeypatch) -> None:
    monitor = store.add_monitor(make_monitor(1))

    async def broken(state):
        raise StorageError("save_monitor_state", "connection lost")

    monkeypatch.setattr(store, "save_monitor_state", broken)
    await processor.process(monitor, fail(1, 0))

    assert processor.cached_state(1).current_status == MonitorStatus.DOWN
    assert (await store.get_monitor(1)).current_status == MonitorStatus.UNKNOWN


@pytest.mark.unit
async def test_results_for_one_monitor_are_serialized(store, processor) -> None:
    monitor = store.add_monitor(make_monitor(1))

    await asyncio.gather(*(processor.process(monitor, fail(1, s)) for s in range(0, 300, 60)))

    state = processor.cached_state(1)
    assert state.consecutive_failures == 5
    assert state.last_checked_at == at(240)
    assert len(processor.locks) == 0


@pytest.mark.unit
async def test_forget(store, processor) -> None:
    monitor = store.add_monitor(make_monitor(1))
    await processor.process(monitor, ok(1, 0))
    assert len(processor) == 1

    processor.forget(1)
    assert processor.cached_state(1) is None
