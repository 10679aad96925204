from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MonitorStatus(str, Enum):
    """Reported status of a monitor."""

    UNKNOWN = "unknown"
    UP = "up"
    DOWN = "down"
    DEGRADED = "degraded"


class MonitorType(str, Enum):
    """How a monitor gets its check results."""

    HTTP = "http"  # actively probed by the scheduler
    WEBHOOK = "webhook"  # passive, fed by status pushes and heartbeats


# Fields owned by the status evaluator rather than the CRUD service
STATE_FIELDS = (
    "current_status",
    "consecutive_failures",
    "recovery_started_at",
    "last_checked_at",
    "last_heartbeat_at",
)


class MonitorRecord(BaseModel):
    """
    A monitor's configuration together with its check state.

    Config fields are owned by the CRUD collaborator and re-read before each
    check. State fields (status, counters, timestamps) are owned by the
    status evaluator.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., max_length=2048)
    monitor_type: MonitorType = MonitorType.HTTP

    # Request configuration
    method: str = Field(default="GET")
    expected_status: int = Field(default=200, ge=100, le=599)
    request_body: str | None = None
    request_headers: dict[str, str] = Field(default_factory=dict)
    follow_redirects: bool = True
    check_ssl: bool = False

    # Scheduling and debounce
    interval_seconds: int = Field(default=60, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    confirmation_threshold: int = Field(default=0, ge=0)
    recovery_window_seconds: int = Field(default=0, ge=0)
    active: bool = True
    alerts_enabled: bool = True

    # State
    current_status: MonitorStatus = MonitorStatus.UNKNOWN
    consecutive_failures: int = 0
    recovery_started_at: datetime | None = None
    last_checked_at: datetime | None = None

    # Webhook monitors
    webhook_token: str | None = None
    webhook_secret: str | None = None
    heartbeat_interval_seconds: int | None = Field(default=None, ge=1)
    last_heartbeat_at: datetime | None = None

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        return v.upper()

    @field_validator("request_headers", mode="before")
    @classmethod
    def parse_headers(cls, v):
        """Accept both a mapping and the list-of-{key, value} shape."""
        if v is None:
            return {}
        if isinstance(v, list):
            return {
                item["key"]: item["value"]
                for item in v
                if item.get("key") and item.get("value")
            }
        return v

    @property
    def is_failing(self) -> bool:
        return self.current_status in (MonitorStatus.DOWN, MonitorStatus.DEGRADED)


class MonitorScheduleResponse(BaseModel):
    """Result of a scheduler integration call."""

    monitor_id: int
    registered: bool
    interval_seconds: int | None = None
