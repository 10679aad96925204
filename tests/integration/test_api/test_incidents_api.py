"""Integration tests for /api/v1/incidents endpoints."""
from __future__ import annotations

import pytest
from httpx import AsyncClient

from helpers import at, make_monitor
from uptime_engine.schemas.incident import IncidentRecord
from uptime_engine.utils.exceptions import StorageError


async def _seed_incident(api_store) -> IncidentRecord:
    api_store.add_monitor(make_monitor(1))
    incident = IncidentRecord(
        monitor_id=1,
        team_id=1,
        title="Monitor 1 is down",
        cause="HTTP 503",
        started_at=at(0),
    )
    incident.add_update("Monitor down: HTTP 503", at(0))
    return await api_store.save_incident(incident)


@pytest.mark.integration
async def test_get_incident(client: AsyncClient, api_store) -> None:
    incident = await _seed_incident(api_store)

    resp = await client.get(f"/api/v1/incidents/{incident.id}")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ongoing"
    assert data["cause"] == "HTTP 503"
    assert [u["message"] for u in data["updates"]] == ["Monitor down: HTTP 503"]


@pytest.mark.integration
async def test_get_incident_not_found(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/incidents/99999")
    assert resp.status_code == 404


@pytest.mark.integration
async def test_acknowledge_then_resolve(client: AsyncClient, api_store) -> None:
    incident = await _seed_incident(api_store)

    ack = await client.post(f"/api/v1/incidents/{incident.id}/acknowledge", json={"by": "alice"})
    assert ack.status_code == 200
    assert ack.json()["status"] == "acknowledged"
    assert ack.json()["acknowledged_by"] == "alice"

    again = await client.post(f"/api/v1/incidents/{incident.id}/acknowledge", json={"by": "bob"})
    assert again.status_code == 409

    resolved = await client.post(
        f"/api/v1/incidents/{incident.id}/resolve", json={"message": "Rolled back deploy"}
    )
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "resolved"
    assert resolved.json()["updates"][-1]["message"] == "Rolled back deploy"

    late = await client.post(f"/api/v1/incidents/{incident.id}/updates", json={"message": "note"})
    assert late.status_code == 409


@pytest.mark.integration
async def test_resolve_without_body(client: AsyncClient, api_store) -> None:
    incident = await _seed_incident(api_store)

    resp = await client.post(f"/api/v1/incidents/{incident.id}/resolve")

    assert resp.status_code == 200
    assert resp.json()["updates"][-1]["message"] == "Resolved manually"


@pytest.mark.integration
async def test_add_update(client: AsyncClient, api_store) -> None:
    incident = await _seed_incident(api_store)

    resp = await client.post(
        f"/api/v1/incidents/{incident.id}/updates", json={"message": "Investigating"}
    )

    assert resp.status_code == 201
    assert len(resp.json()["updates"]) == 2


@pytest.mark.integration
@pytest.mark.parametrize(
    "path,body",
    [
        ("acknowledge", {"by": "alice"}),
        ("resolve", None),
        ("updates", {"message": "x"}),
    ],
)
async def test_actions_on_missing_incident(client: AsyncClient, path, body) -> None:
    resp = await client.post(f"/api/v1/incidents/424242/{path}", json=body)
    assert resp.status_code == 404


@pytest.mark.integration
async def test_acknowledge_requires_name(client: AsyncClient, api_store) -> None:
    incident = await _seed_incident(api_store)
    resp = await client.post(f"/api/v1/incidents/{incident.id}/acknowledge", json={"by": ""})
    assert resp.status_code == 422


@pytest.mark.integration
async def test_deliveries_empty(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/incidents/1/deliveries")
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.integration
async def test_storage_outage_returns_503(client: AsyncClient, api_store, monkeypatch) -> None:
    async def broken(incident_id):
        raise StorageError("get_incident", "connection lost")

    monkeypatch.setattr(api_store, "get_incident", broken)

    read = await client.get("/api/v1/incidents/1")
    ack = await client.post("/api/v1/incidents/1/acknowledge", json={"by": "alice"})
    resolve = await client.post("/api/v1/incidents/1/resolve")

    assert read.status_code == 503
    assert ack.status_code == 503
    assert resolve.status_code == 503
    assert read.json()["detail"] == "Storage unavailable"
