from __future__ import annotations

import itertools
from datetime import datetime

from uptime_engine.schemas.channel import AlertChannelRecord
from uptime_engine.schemas.check import CheckResultCreate
from uptime_engine.schemas.escalation import EscalationPolicyRecord
from uptime_engine.schemas.incident import IncidentRecord
from uptime_engine.schemas.maintenance import MaintenanceWindowRecord
from uptime_engine.schemas.monitor import STATE_FIELDS, MonitorRecord, MonitorType
from uptime_engine.storage.base import StoragePort


class InMemoryStore(StoragePort):
    """Single-process store backed by dicts.

    Records are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self.monitors: dict[int, MonitorRecord] = {}
        self.incidents: dict[int, IncidentRecord] = {}
        self.channels: dict[int, AlertChannelRecord] = {}
        self.policies: dict[int, EscalationPolicyRecord] = {}
        self.maintenance_windows: list[MaintenanceWindowRecord] = []
        self.check_results: list[CheckResultCreate] = []
        self._incident_ids = itertools.count(1)

    # Seeding (the CRUD side in production)

    def add_monitor(self, monitor: MonitorRecord) -> MonitorRecord:
        self.monitors[monitor.id] = monitor.model_copy(deep=True)
        return monitor

    def remove_monitor(self, monitor_id: int) -> None:
        self.monitors.pop(monitor_id, None)

    def add_channel(self, channel: AlertChannelRecord) -> AlertChannelRecord:
        self.channels[channel.id] = channel.model_copy(deep=True)
        return channel

    def set_escalation_policy(self, policy: EscalationPolicyRecord) -> None:
        self.policies[policy.team_id] = policy.model_copy(deep=True)

    def add_maintenance_window(self, window: MaintenanceWindowRecord) -> None:
        self.maintenance_windows.append(window.model_copy(deep=True))

    # Monitors

    async def get_monitor(self, monitor_id: int) -> MonitorRecord | None:
        monitor = self.monitors.get(monitor_id)
        return monitor.model_copy(deep=True) if monitor else None

    async def list_active_monitors(self) -> list[MonitorRecord]:
        return [m.model_copy(deep=True) for m in self.monitors.values() if m.active]

    async def list_ssl_monitors(self) -> list[MonitorRecord]:
        return [m.model_copy(deep=True) for m in self.monitors.values() if m.check_ssl]

    async def list_heartbeat_monitors(self) -> list[MonitorRecord]:
        return [
            m.model_copy(deep=True)
            for m in self.monitors.values()
            if m.active
            and m.monitor_type == MonitorType.WEBHOOK
            and m.heartbeat_interval_seconds
        ]

    async def get_monitor_by_webhook_token(self, token: str) -> MonitorRecord | None:
        for monitor in self.monitors.values():
            if monitor.webhook_token == token:
                return monitor.model_copy(deep=True)
        return None

    async def save_monitor_state(self, monitor: MonitorRecord) -> None:
        stored = self.monitors.get(monitor.id)
        if stored is None:
            return
        for field in STATE_FIELDS:
            setattr(stored, field, getattr(monitor, field))

    async def save_check_result(self, result: CheckResultCreate) -> None:
        self.check_results.append(result.model_copy())

    # Incidents

    async def get_incident(self, incident_id: int) -> IncidentRecord | None:
        incident = self.incidents.get(incident_id)
        return incident.model_copy(deep=True) if incident else None

    async def get_open_incident(self, monitor_id: int) -> IncidentRecord | None:
        candidates = [
            i for i in self.incidents.values() if i.monitor_id == monitor_id and i.is_open
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda i: i.started_at)
        return latest.model_copy(deep=True)

    async def list_open_incidents(self) -> list[IncidentRecord]:
        return [i.model_copy(deep=True) for i in self.incidents.values() if i.is_open]

    async def save_incident(self, incident: IncidentRecord) -> IncidentRecord:
        stored = incident.model_copy(deep=True)
        if stored.id is None:
            stored.id = next(self._incident_ids)
        self.incidents[stored.id] = stored
        return stored.model_copy(deep=True)

    # Team configuration

    async def get_escalation_policy(self, team_id: int) -> EscalationPolicyRecord | None:
        policy = self.policies.get(team_id)
        return policy.model_copy(deep=True) if policy else None

    async def get_channel(self, channel_id: int) -> AlertChannelRecord | None:
        channel = self.channels.get(channel_id)
        return channel.model_copy(deep=True) if channel else None

    async def list_immediate_channels(self, team_id: int) -> list[AlertChannelRecord]:
        return [
            c.model_copy(deep=True)
            for c in self.channels.values()
            if c.team_id == team_id and c.active and c.immediate
        ]

    async def get_active_maintenance(
        self,
        monitor_id: int,
        at: datetime,
    ) -> MaintenanceWindowRecord | None:
        for window in self.maintenance_windows:
            if window.covers(monitor_id, at):
                return window.model_copy(deep=True)
        return None
