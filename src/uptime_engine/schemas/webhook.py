from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class WebhookStatusUpdate(BaseModel):
    """Status pushed by a passive monitor's own service."""

    status: Literal["up", "down", "degraded"]
    message: str | None = Field(None, max_length=1000)
    metadata: dict[str, Any] | None = None


class WebhookAccepted(BaseModel):
    """Response to an accepted status push or heartbeat."""

    monitor_id: int
    name: str
    current_status: str
