"""Unit tests for IncidentManager."""
from __future__ import annotations

from datetime import timedelta

import pytest

from helpers import T0, at, fail, make_channel, make_monitor
from uptime_engine.alerting.base import NotificationKind
from uptime_engine.schemas.escalation import EscalationPolicyRecord, EscalationStepRecord
from uptime_engine.schemas.incident import IncidentStatus
from uptime_engine.schemas.maintenance import MaintenanceWindowRecord
from uptime_engine.schemas.monitor import MonitorStatus
from uptime_engine.services.incident_service import IncidentManager
from uptime_engine.utils.exceptions import (
    IncidentNotFoundError,
    InvalidIncidentTransitionError,
    StorageError,
)


def _down_monitor(**overrides):
    return make_monitor(current_status=MonitorStatus.DOWN, **overrides)


@pytest.mark.unit
async def test_on_down_opens_incident_and_notifies(store, incidents, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    store.add_channel(make_channel(2, immediate=False))
    monitor = _down_monitor()

    incident = await incidents.on_down(monitor, fail(1, 0))
    await dispatcher.drain()

    assert incident.id == 1
    assert incident.status == IncidentStatus.ONGOING
    assert incident.title == "Monitor 1 is down"
    assert incident.cause == "Status code 503 (expected 200)"
    assert incident.started_at == at(0)
    assert incident.updates[0].message == "Monitor down: Status code 503 (expected 200)"
    assert (await store.get_incident(1)).status == IncidentStatus.ONGOING

    assert [channel_id for channel_id, _ in sent] == [1]
    payload = sent[0][1]
    assert payload.kind == NotificationKind.OPENED
    assert payload.incident_id == 1
    assert payload.status == "down"


@pytest.mark.unit
async def test_on_down_is_idempotent(store, incidents, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    monitor = _down_monitor()

    first = await incidents.on_down(monitor, fail(1, 0))
    second = await incidents.on_down(monitor, fail(1, 60))
    await dispatcher.drain()

    assert first.id == second.id
    assert len(store.incidents) == 1
    assert len(sent) == 1


@pytest.mark.unit
async def test_degraded_title(incidents) -> None:
    monitor = make_monitor(current_status=MonitorStatus.DEGRADED)
    incident = await incidents.on_down(monitor, fail(1, 0, message="Reported degraded"))
    assert incident.title == "Monitor 1 is degraded"


@pytest.mark.unit
async def test_maintenance_suppresses_incident(store, incidents) -> None:
    store.add_maintenance_window(
        MaintenanceWindowRecord(
            team_id=1,
            monitor_ids=[1],
            starts_at=T0 - timedelta(hours=1),
            ends_at=T0 + timedelta(hours=1),
            suppress_incidents=True,
        )
    )

    assert await incidents.on_down(_down_monitor(), fail(1, 0)) is None
    assert store.incidents == {}


@pytest.mark.unit
async def test_maintenance_suppresses_alerts_only(store, incidents, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    store.add_maintenance_window(
        MaintenanceWindowRecord(
            team_id=1,
            monitor_ids=[1],
            starts_at=T0 - timedelta(hours=1),
            ends_at=T0 + timedelta(hours=1),
        )
    )

    incident = await incidents.on_down(_down_monitor(), fail(1, 0))
    await dispatcher.drain()

    assert incident is not None
    assert sent == []


@pytest.mark.unit
async def test_alerts_disabled_skips_notifications(store, incidents, escalation, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    store.set_escalation_policy(
        EscalationPolicyRecord(team_id=1, steps=[EscalationStepRecord(delay_seconds=60, channel_ids=[1])])
    )

    incident = await incidents.on_down(_down_monitor(alerts_enabled=False), fail(1, 0))
    await dispatcher.drain()

    assert sent == []
    assert not escalation.is_escalating(incident.id)


@pytest.mark.unit
async def test_on_up_resolves_and_notifies(store, incidents, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    monitor = _down_monitor()
    await incidents.on_down(monitor, fail(1, 0))

    monitor.current_status = MonitorStatus.UP
    resolved = await incidents.on_up(monitor, at(600))
    await dispatcher.drain()

    assert resolved.status == IncidentStatus.RESOLVED
    assert resolved.resolved_at == at(600)
    assert resolved.updates[-1].message == "Monitor recovered, incident resolved automatically"
    assert await incidents.get_open_incident(1) is None

    kinds = [payload.kind for _, payload in sent]
    assert kinds == [NotificationKind.OPENED, NotificationKind.RESOLVED]
    assert sent[1][1].message == "Resolved after 10 min. Cause was: Status code 503 (expected 200)"


@pytest.mark.unit
async def test_on_up_without_open_incident(incidents) -> None:
    assert await incidents.on_up(make_monitor(), at(0)) is None


@pytest.mark.unit
async def test_acknowledge(incidents) -> None:
    incident = await incidents.on_down(_down_monitor(), fail(1, 0))

    acked = await incidents.acknowledge(incident.id, "alice", at=at(120))

    assert acked.status == IncidentStatus.ACKNOWLEDGED
    assert acked.acknowledged_by == "alice"
    assert acked.acknowledged_at == at(120)
    assert acked.updates[-1].message == "Acknowledged by alice"

    with pytest.raises(InvalidIncidentTransitionError):
        await incidents.acknowledge(incident.id, "bob")


@pytest.mark.unit
async def test_manual_resolve_sends_nothing(store, incidents, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    incident = await incidents.on_down(_down_monitor(), fail(1, 0))
    await dispatcher.drain()
    sent.clear()

    resolved = await incidents.resolve(incident.id, at=at(300))
    await dispatcher.drain()

    assert resolved.status == IncidentStatus.RESOLVED
    assert resolved.updates[-1].message == "Resolved manually"
    assert sent == []
    assert await incidents.get_open_incident(1) is None

    with pytest.raises(InvalidIncidentTransitionError):
        await incidents.resolve(incident.id)


@pytest.mark.unit
async def test_resolve_acknowledged_incident(incidents) -> None:
    incident = await incidents.on_down(_down_monitor(), fail(1, 0))
    await incidents.acknowledge(incident.id, "alice")

    resolved = await incidents.resolve(incident.id, "Rolled back the deploy")

    assert resolved.status == IncidentStatus.RESOLVED
    assert resolved.updates[-1].message == "Rolled back the deploy"


@pytest.mark.unit
async def test_add_update(incidents) -> None:
    incident = await incidents.on_down(_down_monitor(), fail(1, 0))

    updated = await incidents.add_update(incident.id, "Investigating", at=at(30))

    assert [u.message for u in updated.updates][-1] == "Investigating"
    assert updated.updates[-1].status == IncidentStatus.ONGOING

    await incidents.resolve(incident.id)
    with pytest.raises(InvalidIncidentTransitionError):
        await incidents.add_update(incident.id, "Too late")


@pytest.mark.unit
async def test_unknown_incident(incidents) -> None:
    with pytest.raises(IncidentNotFoundError):
        await incidents.acknowledge(99, "alice")
    with pytest.raises(IncidentNotFoundError):
        await incidents.resolve(99)
    assert await incidents.get_incident(99) is None


@pytest.mark.unit
async def test_storage_failure_keeps_transition(store, incidents, monkeypatch) -> None:
    async def broken(incident):
        raise StorageError("save_incident", "database is locked")

    monkeypatch.setattr(store, "save_incident", broken)

    incident = await incidents.on_down(_down_monitor(), fail(1, 0))

    assert incident.status == IncidentStatus.ONGOING
    assert (await incidents.get_open_incident(1)) is not None
    assert store.incidents == {}


@pytest.mark.unit
async def test_load_open_incidents(store, dispatcher, escalation, incidents) -> None:
    await incidents.on_down(_down_monitor(), fail(1, 0))

    fresh = IncidentManager(store, dispatcher, escalation, write_retries=0)
    loaded = await fresh.load_open_incidents()

    assert [i.monitor_id for i in loaded] == [1]
    assert len(fresh.open_incidents()) == 1
