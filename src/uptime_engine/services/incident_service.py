from __future__ import annotations

from datetime import datetime, timezone

import structlog

from uptime_engine.alerting.base import NotificationKind
from uptime_engine.alerting.dispatcher import NotificationDispatcher, build_incident_payload
from uptime_engine.schemas.check import CheckResultCreate
from uptime_engine.schemas.incident import IncidentRecord, IncidentStatus
from uptime_engine.schemas.maintenance import MaintenanceWindowRecord
from uptime_engine.schemas.monitor import MonitorRecord, MonitorStatus
from uptime_engine.services.escalation_engine import EscalationEngine
from uptime_engine.storage.base import StoragePort
from uptime_engine.storage.retry import retry_write
from uptime_engine.utils.exceptions import (
    IncidentNotFoundError,
    InvalidIncidentTransitionError,
    StorageError,
)
from uptime_engine.utils.locks import KeyedLock

logger = structlog.get_logger(__name__)


class IncidentManager:
    """
    Incident lifecycle: ONGOING -> ACKNOWLEDGED -> RESOLVED, or ONGOING -> RESOLVED.

    Open incidents are cached per monitor and the cache is authoritative for
    the life of the process; storage writes are retried and, if they still
    fail, logged without rolling back the transition. A per-incident lock
    serializes the evaluator path with operator actions.
    """

    def __init__(
        self,
        store: StoragePort,
        dispatcher: NotificationDispatcher,
        escalation: EscalationEngine,
        write_retries: int = 3,
        retry_base_seconds: float = 0.5,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.escalation = escalation
        self.write_retries = write_retries
        self.retry_base_seconds = retry_base_seconds
        self._locks = KeyedLock()
        self._open: dict[int, IncidentRecord] = {}
        # Escalation must see operator transitions even when a write failed
        self.escalation.incident_lookup = self.get_incident

    async def load_open_incidents(self) -> list[IncidentRecord]:
        """Fill the open-incident cache from storage. Called once at startup."""
        incidents = await self.store.list_open_incidents()
        for incident in incidents:
            self._open[incident.monitor_id] = incident
        logger.info("open_incidents_loaded", count=len(incidents))
        return incidents

    def open_incidents(self) -> list[IncidentRecord]:
        return [i.model_copy(deep=True) for i in self._open.values()]

    async def get_incident(self, incident_id: int) -> IncidentRecord | None:
        for incident in self._open.values():
            if incident.id == incident_id:
                return incident.model_copy(deep=True)
        return await self.store.get_incident(incident_id)

    async def get_open_incident(self, monitor_id: int) -> IncidentRecord | None:
        incident = self._open.get(monitor_id)
        if incident is None:
            incident = await self.store.get_open_incident(monitor_id)
            if incident is not None:
                self._open[monitor_id] = incident
        return incident

    async def _save(self, incident: IncidentRecord) -> IncidentRecord:
        try:
            return await retry_write(
                "save_incident",
                lambda: self.store.save_incident(incident),
                retries=self.write_retries,
                base_delay=self.retry_base_seconds,
            )
        except StorageError:
            # Keep the in-memory transition; a later save carries it forward
            return incident

    async def _maintenance(self, monitor_id: int, at: datetime) -> MaintenanceWindowRecord | None:
        try:
            return await self.store.get_active_maintenance(monitor_id, at)
        except StorageError as exc:
            logger.error("maintenance_lookup_failed", monitor_id=monitor_id, error=str(exc))
            return None

    async def _notify_immediate(
        self,
        incident: IncidentRecord,
        monitor: MonitorRecord,
        kind: NotificationKind,
    ) -> None:
        try:
            channels = await self.store.list_immediate_channels(monitor.team_id)
        except StorageError as exc:
            logger.error("immediate_channels_lookup_failed", team_id=monitor.team_id, error=str(exc))
            return
        if not channels:
            logger.info("no_immediate_channels", team_id=monitor.team_id, incident_id=incident.id)
            return
        self.dispatcher.notify_many(channels, build_incident_payload(incident, monitor, kind))

    async def on_down(
        self,
        monitor: MonitorRecord,
        result: CheckResultCreate,
    ) -> IncidentRecord | None:
        """
        Open an incident for a monitor that just transitioned DOWN or DEGRADED.

        Idempotent: if the monitor already has an open incident it is
        returned unchanged.
        """
        existing = await self.get_open_incident(monitor.id)
        if existing is not None:
            logger.debug("incident_already_open", monitor_id=monitor.id, incident_id=existing.id)
            return existing

        at = result.checked_at
        maintenance = await self._maintenance(monitor.id, at)
        if maintenance is not None and maintenance.suppress_incidents:
            logger.info(
                "incident_suppressed_by_maintenance",
                monitor_id=monitor.id,
                maintenance_id=maintenance.id,
            )
            return None

        status_word = "degraded" if monitor.current_status == MonitorStatus.DEGRADED else "down"
        incident = IncidentRecord(
            monitor_id=monitor.id,
            team_id=monitor.team_id,
            title=f"{monitor.name} is {status_word}",
            cause=result.cause,
            started_at=at,
        )
        incident.add_update(f"Monitor {status_word}: {result.cause}", at)
        incident = await self._save(incident)
        self._open[monitor.id] = incident

        logger.warning(
            "incident_opened",
            incident_id=incident.id,
            monitor_id=monitor.id,
            cause=incident.cause,
        )

        if not monitor.alerts_enabled:
            logger.info("alerts_disabled", monitor_id=monitor.id, incident_id=incident.id)
        elif maintenance is not None and maintenance.suppress_alerts:
            logger.info(
                "alerts_suppressed_by_maintenance",
                monitor_id=monitor.id,
                maintenance_id=maintenance.id,
            )
        else:
            await self._notify_immediate(incident, monitor, NotificationKind.OPENED)
            await self.escalation.start(incident, monitor)

        return incident.model_copy(deep=True)

    async def on_up(self, monitor: MonitorRecord, at: datetime) -> IncidentRecord | None:
        """Auto-resolve the monitor's open incident after recovery."""
        incident = await self.get_open_incident(monitor.id)
        if incident is None:
            return None

        async with self._locks.hold(incident.id):
            # An operator may have resolved it while we waited for the lock
            current = self._open.get(monitor.id)
            if current is None or current.id != incident.id or not current.is_open:
                return None

            current.status = IncidentStatus.RESOLVED
            current.resolved_at = at
            current.add_update("Monitor recovered, incident resolved automatically", at)
            self._open.pop(monitor.id, None)
            if current.id is not None:
                self.escalation.stop(current.id)
            saved = await self._save(current)

        logger.info(
            "incident_auto_resolved",
            incident_id=saved.id,
            monitor_id=monitor.id,
            duration_seconds=saved.duration_seconds(at),
        )

        maintenance = await self._maintenance(monitor.id, at)
        if monitor.alerts_enabled and not (maintenance is not None and maintenance.suppress_alerts):
            await self._notify_immediate(saved, monitor, NotificationKind.RESOLVED)
        return saved.model_copy(deep=True)

    async def _load_for_action(self, incident_id: int) -> IncidentRecord:
        for incident in self._open.values():
            if incident.id == incident_id:
                return incident
        incident = await self.store.get_incident(incident_id)
        if incident is None:
            raise IncidentNotFoundError(incident_id)
        return incident

    async def acknowledge(
        self,
        incident_id: int,
        by: str,
        at: datetime | None = None,
    ) -> IncidentRecord:
        """Acknowledge an ONGOING incident and stop its escalation."""
        at = at or datetime.now(timezone.utc)
        async with self._locks.hold(incident_id):
            incident = await self._load_for_action(incident_id)
            if incident.status != IncidentStatus.ONGOING:
                raise InvalidIncidentTransitionError(
                    incident_id, incident.status.value, "acknowledge"
                )
            incident.status = IncidentStatus.ACKNOWLEDGED
            incident.acknowledged_at = at
            incident.acknowledged_by = by
            incident.add_update(f"Acknowledged by {by}", at)
            self._open[incident.monitor_id] = incident
            self.escalation.stop(incident_id)
            saved = await self._save(incident)

        logger.info("incident_acknowledged", incident_id=incident_id, by=by)
        return saved.model_copy(deep=True)

    async def resolve(
        self,
        incident_id: int,
        message: str | None = None,
        at: datetime | None = None,
    ) -> IncidentRecord:
        """Resolve an ONGOING or ACKNOWLEDGED incident by hand."""
        at = at or datetime.now(timezone.utc)
        async with self._locks.hold(incident_id):
            incident = await self._load_for_action(incident_id)
            if not incident.is_open:
                raise InvalidIncidentTransitionError(
                    incident_id, incident.status.value, "resolve"
                )
            incident.status = IncidentStatus.RESOLVED
            incident.resolved_at = at
            incident.add_update(message or "Resolved manually", at)
            cached = self._open.get(incident.monitor_id)
            if cached is not None and cached.id == incident_id:
                del self._open[incident.monitor_id]
            self.escalation.stop(incident_id)
            saved = await self._save(incident)

        logger.info("incident_resolved", incident_id=incident_id)
        return saved.model_copy(deep=True)

    async def add_update(
        self,
        incident_id: int,
        message: str,
        at: datetime | None = None,
    ) -> IncidentRecord:
        """Append a free-text update to an open incident."""
        at = at or datetime.now(timezone.utc)
        async with self._locks.hold(incident_id):
            incident = await self._load_for_action(incident_id)
            if not incident.is_open:
                raise InvalidIncidentTransitionError(
                    incident_id, incident.status.value, "update"
                )
            incident.add_update(message, at)
            saved = await self._save(incident)
            if incident.monitor_id in self._open:
                self._open[incident.monitor_id] = saved

        return saved.model_copy(deep=True)

    def forget(self, monitor_id: int) -> IncidentRecord | None:
        """Drop a deleted monitor's cached incident and stop its escalation."""
        incident = self._open.pop(monitor_id, None)
        if incident is not None and incident.id is not None:
            self.escalation.stop(incident.id)
            logger.info("incident_forgotten", incident_id=incident.id, monitor_id=monitor_id)
        return incident
