from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IncidentStatus(str, Enum):
    """Incident lifecycle states."""

    ONGOING = "ongoing"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class IncidentUpdateRecord(BaseModel):
    """A timestamped entry in an incident's history."""

    model_config = ConfigDict(from_attributes=True)

    created_at: datetime
    status: IncidentStatus
    message: str


class IncidentRecord(BaseModel):
    """An incident and its ordered update history."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    monitor_id: int
    team_id: int
    title: str
    status: IncidentStatus = IncidentStatus.ONGOING
    cause: str | None = None
    started_at: datetime
    acknowledged_at: datetime | None = None
    acknowledged_by: str | None = None
    resolved_at: datetime | None = None
    updates: list[IncidentUpdateRecord] = Field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status != IncidentStatus.RESOLVED

    def add_update(self, message: str, at: datetime) -> IncidentUpdateRecord:
        update = IncidentUpdateRecord(created_at=at, status=self.status, message=message)
        self.updates.append(update)
        return update

    def duration_seconds(self, now: datetime) -> int:
        end = self.resolved_at or now
        return int((end - self.started_at).total_seconds())


class IncidentAcknowledge(BaseModel):
    """Operator acknowledgement payload."""

    by: str = Field(..., min_length=1, max_length=255)


class IncidentResolve(BaseModel):
    """Operator resolution payload."""

    message: str | None = Field(None, max_length=2000)


class IncidentUpdateCreate(BaseModel):
    """Operator free-text update payload."""

    message: str = Field(..., min_length=1, max_length=2000)


class IncidentResponse(BaseModel):
    """Schema for incident response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    monitor_id: int
    team_id: int
    title: str
    status: IncidentStatus
    cause: str | None
    started_at: datetime
    acknowledged_at: datetime | None
    acknowledged_by: str | None
    resolved_at: datetime | None
    updates: list[IncidentUpdateRecord]
