from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from uptime_engine.services.heartbeat_service import HeartbeatService
from uptime_engine.services.incident_service import IncidentManager
from uptime_engine.workers.runtime import MonitoringRuntime


def get_runtime(request: Request) -> MonitoringRuntime:
    """Dependency to get the engine runtime attached to the app."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Monitoring runtime is not running",
        )
    return runtime


RuntimeDep = Annotated[MonitoringRuntime, Depends(get_runtime)]


def get_incident_manager(runtime: RuntimeDep) -> IncidentManager:
    return runtime.incidents


def get_heartbeat_service(runtime: RuntimeDep) -> HeartbeatService:
    return runtime.heartbeats


IncidentManagerDep = Annotated[IncidentManager, Depends(get_incident_manager)]
HeartbeatServiceDep = Annotated[HeartbeatService, Depends(get_heartbeat_service)]
