from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MaintenanceWindowRecord(BaseModel):
    """Planned maintenance that can silence incidents and alerts for some monitors."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    team_id: int
    name: str = ""
    monitor_ids: list[int] = Field(default_factory=list)
    starts_at: datetime
    ends_at: datetime
    active: bool = True
    suppress_alerts: bool = True
    suppress_incidents: bool = False

    def covers(self, monitor_id: int, at: datetime) -> bool:
        return (
            self.active
            and monitor_id in self.monitor_ids
            and self.starts_at <= at <= self.ends_at
        )
