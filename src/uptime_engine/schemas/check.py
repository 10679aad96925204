from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from uptime_engine.schemas.monitor import MonitorStatus


class ErrorClassification(str, Enum):
    """Why a check failed."""

    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    DNS_FAILURE = "dns_failure"
    TLS_ERROR = "tls_error"
    UNEXPECTED_STATUS = "unexpected_status"
    OTHER = "other"


class CheckResultBase(BaseModel):
    """Base check result schema."""

    status_code: int | None = None
    latency_ms: float | None = None
    success: bool
    error_classification: ErrorClassification | None = None
    error_message: str | None = Field(None, max_length=1000)


class CheckResultCreate(CheckResultBase):
    """
    Outcome of one check, produced by the prober or a webhook push.

    ``reported_status`` is only set for webhook pushes, where the sender can
    say ``degraded`` rather than plain up/down.
    """

    monitor_id: int
    checked_at: datetime
    reported_status: MonitorStatus | None = None

    @property
    def cause(self) -> str:
        """Short human readable failure cause for incident records."""
        if self.error_message:
            return self.error_message
        if self.error_classification is not None:
            return self.error_classification.value
        if self.status_code is not None:
            return f"HTTP {self.status_code}"
        return "Monitor unavailable"


class CheckResultResponse(CheckResultBase):
    """Schema for a persisted check result."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    monitor_id: int
    checked_at: datetime
