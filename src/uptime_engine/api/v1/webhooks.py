from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import ValidationError

from uptime_engine.dependencies import HeartbeatServiceDep
from uptime_engine.schemas.monitor import MonitorRecord
from uptime_engine.schemas.webhook import WebhookAccepted, WebhookStatusUpdate
from uptime_engine.utils.exceptions import (
    MonitorNotFoundError,
    StorageError,
    WebhookRejectedError,
    WebhookSignatureError,
)

router = APIRouter()


def _accepted(monitor: MonitorRecord) -> WebhookAccepted:
    return WebhookAccepted(
        monitor_id=monitor.id,
        name=monitor.name,
        current_status=monitor.current_status.value,
    )


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, MonitorNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Monitor not found or invalid token",
        )
    if isinstance(exc, WebhookSignatureError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.reason)
    if isinstance(exc, WebhookRejectedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.reason)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Storage unavailable",
    )


@router.post("/{token}", response_model=WebhookAccepted)
async def push_status(
    token: str,
    request: Request,
    service: HeartbeatServiceDep,
    x_webhook_signature: str | None = Header(default=None),
) -> WebhookAccepted:
    """Receive a status update from a webhook monitor."""
    # Signature covers the raw bytes, so parse after reading them
    raw_body = await request.body()
    try:
        update = WebhookStatusUpdate.model_validate_json(raw_body or b"{}")
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False),
        ) from exc

    try:
        monitor = await service.push_status(
            token,
            update,
            raw_body=raw_body,
            signature=x_webhook_signature,
        )
    except (
        MonitorNotFoundError,
        WebhookSignatureError,
        WebhookRejectedError,
        StorageError,
    ) as exc:
        raise _to_http(exc) from exc

    return _accepted(monitor)


@router.post("/{token}/heartbeat", response_model=WebhookAccepted)
async def heartbeat(
    token: str,
    request: Request,
    service: HeartbeatServiceDep,
    x_webhook_signature: str | None = Header(default=None),
) -> WebhookAccepted:
    """Record a heartbeat ping for a webhook monitor."""
    raw_body = await request.body()
    try:
        monitor = await service.heartbeat(
            token,
            raw_body=raw_body,
            signature=x_webhook_signature,
        )
    except (
        MonitorNotFoundError,
        WebhookSignatureError,
        WebhookRejectedError,
        StorageError,
    ) as exc:
        raise _to_http(exc) from exc

    return _accepted(monitor)
