from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from uptime_engine.dependencies import IncidentManagerDep, RuntimeDep
from uptime_engine.schemas.incident import (
    IncidentAcknowledge,
    IncidentRecord,
    IncidentResolve,
    IncidentResponse,
    IncidentUpdateCreate,
)
from uptime_engine.utils.exceptions import (
    IncidentNotFoundError,
    InvalidIncidentTransitionError,
    StorageError,
)

router = APIRouter()


def _response(incident: IncidentRecord) -> IncidentResponse:
    return IncidentResponse.model_validate(incident.model_dump())


def _not_found(incident_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Incident {incident_id} not found",
    )


def _conflict(exc: InvalidIncidentTransitionError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Storage unavailable",
    )


@router.get("/{incident_id}", response_model=IncidentResponse)
async def get_incident(
    incident_id: int,
    incidents: IncidentManagerDep,
) -> IncidentResponse:
    """Get an incident with its update history."""
    try:
        incident = await incidents.get_incident(incident_id)
    except StorageError as exc:
        raise _unavailable() from exc
    if incident is None:
        raise _not_found(incident_id)
    return _response(incident)


@router.post("/{incident_id}/acknowledge", response_model=IncidentResponse)
async def acknowledge_incident(
    incident_id: int,
    body: IncidentAcknowledge,
    incidents: IncidentManagerDep,
) -> IncidentResponse:
    """Acknowledge an ongoing incident. Stops escalation."""
    try:
        incident = await incidents.acknowledge(incident_id, body.by)
    except IncidentNotFoundError as exc:
        raise _not_found(incident_id) from exc
    except InvalidIncidentTransitionError as exc:
        raise _conflict(exc) from exc
    except StorageError as exc:
        raise _unavailable() from exc
    return _response(incident)


@router.post("/{incident_id}/resolve", response_model=IncidentResponse)
async def resolve_incident(
    incident_id: int,
    incidents: IncidentManagerDep,
    body: IncidentResolve | None = None,
) -> IncidentResponse:
    """Resolve an incident by hand."""
    try:
        incident = await incidents.resolve(incident_id, body.message if body else None)
    except IncidentNotFoundError as exc:
        raise _not_found(incident_id) from exc
    except InvalidIncidentTransitionError as exc:
        raise _conflict(exc) from exc
    except StorageError as exc:
        raise _unavailable() from exc
    return _response(incident)


@router.post(
    "/{incident_id}/updates",
    response_model=IncidentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_incident_update(
    incident_id: int,
    body: IncidentUpdateCreate,
    incidents: IncidentManagerDep,
) -> IncidentResponse:
    """Append an update to an open incident."""
    try:
        incident = await incidents.add_update(incident_id, body.message)
    except IncidentNotFoundError as exc:
        raise _not_found(incident_id) from exc
    except InvalidIncidentTransitionError as exc:
        raise _conflict(exc) from exc
    except StorageError as exc:
        raise _unavailable() from exc
    return _response(incident)


@router.get("/{incident_id}/deliveries")
async def list_incident_deliveries(
    incident_id: int,
    runtime: RuntimeDep,
) -> list[dict]:
    """Notification delivery attempts recorded for an incident."""
    return [r.to_dict() for r in runtime.dispatcher.deliveries_for_incident(incident_id)]
