from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from uptime_engine.dependencies import RuntimeDep
from uptime_engine.schemas.monitor import MonitorScheduleResponse
from uptime_engine.schemas.ssl import SSLInfo
from uptime_engine.utils.exceptions import MonitorNotFoundError, SchedulingError

router = APIRouter()


@router.post("/{monitor_id}/schedule", response_model=MonitorScheduleResponse)
async def schedule_monitor(
    monitor_id: int,
    runtime: RuntimeDep,
) -> MonitorScheduleResponse:
    """Register a monitor with the scheduler, or reschedule it after a config change."""
    try:
        registered = await runtime.schedule(monitor_id)
    except MonitorNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Monitor {monitor_id} not found",
        ) from exc
    except SchedulingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.reason,
        ) from exc

    return MonitorScheduleResponse(
        monitor_id=monitor_id,
        registered=registered,
        interval_seconds=runtime.scheduler.interval_of(monitor_id),
    )


@router.delete("/{monitor_id}/schedule", status_code=status.HTTP_204_NO_CONTENT)
async def unschedule_monitor(
    monitor_id: int,
    runtime: RuntimeDep,
    deleted: bool = False,
) -> None:
    """
    Stop checking a monitor. Pass ``deleted=true`` when the monitor was
    deleted so its open incident stops escalating.
    """
    runtime.unschedule(monitor_id, deleted=deleted)


@router.post("/{monitor_id}/run", status_code=status.HTTP_202_ACCEPTED)
async def run_monitor_now(
    monitor_id: int,
    runtime: RuntimeDep,
) -> dict[str, int | bool]:
    """Queue an immediate check."""
    try:
        queued = runtime.run_now(monitor_id)
    except SchedulingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.reason,
        ) from exc
    return {"monitor_id": monitor_id, "queued": queued}


@router.get("/{monitor_id}/ssl", response_model=SSLInfo)
async def get_monitor_ssl(
    monitor_id: int,
    runtime: RuntimeDep,
) -> SSLInfo:
    """Inspect the monitor's TLS certificate now."""
    try:
        return await runtime.inspect_ssl(monitor_id)
    except MonitorNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Monitor {monitor_id} not found",
        ) from exc
