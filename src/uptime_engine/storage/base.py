from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from uptime_engine.schemas.channel import AlertChannelRecord
from uptime_engine.schemas.check import CheckResultCreate
from uptime_engine.schemas.escalation import EscalationPolicyRecord
from uptime_engine.schemas.incident import IncidentRecord
from uptime_engine.schemas.maintenance import MaintenanceWindowRecord
from uptime_engine.schemas.monitor import MonitorRecord


class StoragePort(ABC):
    """
    Everything the engine reads from or writes to persistent storage.

    Monitor configuration, channels, policies and maintenance windows are
    owned by the CRUD service and only read here. The engine writes monitor
    state, check results and incidents.

    Implementations raise ``StorageError`` on any backend fault.
    """

    # Monitors

    @abstractmethod
    async def get_monitor(self, monitor_id: int) -> MonitorRecord | None:
        pass

    @abstractmethod
    async def list_active_monitors(self) -> list[MonitorRecord]:
        """Active monitors of every type."""
        pass

    @abstractmethod
    async def list_ssl_monitors(self) -> list[MonitorRecord]:
        """Monitors with ``check_ssl`` set, active or not."""
        pass

    @abstractmethod
    async def list_heartbeat_monitors(self) -> list[MonitorRecord]:
        """Active webhook monitors that expect heartbeats."""
        pass

    @abstractmethod
    async def get_monitor_by_webhook_token(self, token: str) -> MonitorRecord | None:
        pass

    @abstractmethod
    async def save_monitor_state(self, monitor: MonitorRecord) -> None:
        """Persist the state fields only; config fields are left untouched."""
        pass

    @abstractmethod
    async def save_check_result(self, result: CheckResultCreate) -> None:
        pass

    # Incidents

    @abstractmethod
    async def get_incident(self, incident_id: int) -> IncidentRecord | None:
        pass

    @abstractmethod
    async def get_open_incident(self, monitor_id: int) -> IncidentRecord | None:
        pass

    @abstractmethod
    async def list_open_incidents(self) -> list[IncidentRecord]:
        pass

    @abstractmethod
    async def save_incident(self, incident: IncidentRecord) -> IncidentRecord:
        """Insert when ``incident.id`` is None, update otherwise. Returns the stored copy."""
        pass

    # Team configuration

    @abstractmethod
    async def get_escalation_policy(self, team_id: int) -> EscalationPolicyRecord | None:
        pass

    @abstractmethod
    async def get_channel(self, channel_id: int) -> AlertChannelRecord | None:
        pass

    @abstractmethod
    async def list_immediate_channels(self, team_id: int) -> list[AlertChannelRecord]:
        pass

    @abstractmethod
    async def get_active_maintenance(
        self,
        monitor_id: int,
        at: datetime,
    ) -> MaintenanceWindowRecord | None:
        pass
