from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from uptime_engine.models.alert_channel import AlertChannel
from uptime_engine.models.check_result import CheckResult
from uptime_engine.models.escalation import EscalationPolicy
from uptime_engine.models.incident import Incident, IncidentUpdate
from uptime_engine.models.maintenance import MaintenanceWindow
from uptime_engine.models.monitor import Monitor
from uptime_engine.schemas.channel import AlertChannelRecord
from uptime_engine.schemas.check import CheckResultCreate
from uptime_engine.schemas.escalation import EscalationPolicyRecord
from uptime_engine.schemas.incident import IncidentRecord, IncidentStatus
from uptime_engine.schemas.maintenance import MaintenanceWindowRecord
from uptime_engine.schemas.monitor import MonitorRecord, MonitorType
from uptime_engine.storage.base import StoragePort
from uptime_engine.utils.exceptions import StorageError

logger = structlog.get_logger(__name__)


class SqlAlchemyStore(StoragePort):
    """Storage port over SQLAlchemy async sessions (asyncpg or aiosqlite)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("storage_operation_failed", operation=operation, error=str(exc))
                raise StorageError(operation, str(exc)) from exc

    # Monitors

    async def get_monitor(self, monitor_id: int) -> MonitorRecord | None:
        async with self._session("get_monitor") as db:
            monitor = await db.get(Monitor, monitor_id)
            return MonitorRecord.model_validate(monitor) if monitor else None

    async def _select_monitors(self, operation: str, *criteria) -> list[MonitorRecord]:
        async with self._session(operation) as db:
            stmt = select(Monitor).where(*criteria).order_by(Monitor.id)
            result = await db.execute(stmt)
            return [MonitorRecord.model_validate(m) for m in result.scalars().all()]

    async def list_active_monitors(self) -> list[MonitorRecord]:
        return await self._select_monitors(
            "list_active_monitors",
            Monitor.active == True,  # noqa: E712
        )

    async def list_ssl_monitors(self) -> list[MonitorRecord]:
        return await self._select_monitors(
            "list_ssl_monitors",
            Monitor.check_ssl == True,  # noqa: E712
        )

    async def list_heartbeat_monitors(self) -> list[MonitorRecord]:
        return await self._select_monitors(
            "list_heartbeat_monitors",
            Monitor.active == True,  # noqa: E712
            Monitor.monitor_type == MonitorType.WEBHOOK.value,
            Monitor.heartbeat_interval_seconds.is_not(None),
        )

    async def get_monitor_by_webhook_token(self, token: str) -> MonitorRecord | None:
        async with self._session("get_monitor_by_webhook_token") as db:
            result = await db.execute(select(Monitor).where(Monitor.webhook_token == token))
            monitor = result.scalar_one_or_none()
            return MonitorRecord.model_validate(monitor) if monitor else None

    async def save_monitor_state(self, monitor: MonitorRecord) -> None:
        async with self._session("save_monitor_state") as db:
            await db.execute(
                update(Monitor)
                .where(Monitor.id == monitor.id)
                .values(
                    current_status=monitor.current_status.value,
                    consecutive_failures=monitor.consecutive_failures,
                    recovery_started_at=monitor.recovery_started_at,
                    last_checked_at=monitor.last_checked_at,
                    last_heartbeat_at=monitor.last_heartbeat_at,
                )
            )
            await db.commit()

    async def save_check_result(self, result: CheckResultCreate) -> None:
        async with self._session("save_check_result") as db:
            db.add(
                CheckResult(
                    monitor_id=result.monitor_id,
                    status_code=result.status_code,
                    latency_ms=result.latency_ms,
                    success=result.success,
                    error_classification=(
                        result.error_classification.value
                        if result.error_classification
                        else None
                    ),
                    error_message=result.error_message,
                    reported_status=(
                        result.reported_status.value if result.reported_status else None
                    ),
                    checked_at=result.checked_at,
                )
            )
            await db.commit()

    # Incidents

    async def get_incident(self, incident_id: int) -> IncidentRecord | None:
        async with self._session("get_incident") as db:
            incident = await db.get(Incident, incident_id)
            return IncidentRecord.model_validate(incident) if incident else None

    async def get_open_incident(self, monitor_id: int) -> IncidentRecord | None:
        async with self._session("get_open_incident") as db:
            stmt = (
                select(Incident)
                .where(Incident.monitor_id == monitor_id)
                .where(Incident.status != IncidentStatus.RESOLVED.value)
                .order_by(Incident.started_at.desc())
                .limit(1)
            )
            incident = (await db.execute(stmt)).scalar_one_or_none()
            return IncidentRecord.model_validate(incident) if incident else None

    async def list_open_incidents(self) -> list[IncidentRecord]:
        async with self._session("list_open_incidents") as db:
            stmt = (
                select(Incident)
                .where(Incident.status != IncidentStatus.RESOLVED.value)
                .order_by(Incident.started_at.asc())
            )
            result = await db.execute(stmt)
            return [IncidentRecord.model_validate(i) for i in result.scalars().all()]

    async def save_incident(self, incident: IncidentRecord) -> IncidentRecord:
        async with self._session("save_incident") as db:
            if incident.id is None:
                row = Incident(monitor_id=incident.monitor_id, team_id=incident.team_id)
                row.updates = []
                db.add(row)
            else:
                row = await db.get(Incident, incident.id)
                if row is None:
                    raise StorageError("save_incident", f"incident {incident.id} does not exist")

            row.title = incident.title
            row.cause = incident.cause
            row.status = incident.status.value
            row.started_at = incident.started_at
            row.acknowledged_at = incident.acknowledged_at
            row.acknowledged_by = incident.acknowledged_by
            row.resolved_at = incident.resolved_at

            # Updates are append-only
            for position in range(len(row.updates), len(incident.updates)):
                entry = incident.updates[position]
                row.updates.append(
                    IncidentUpdate(
                        position=position,
                        status=entry.status.value,
                        message=entry.message,
                        created_at=entry.created_at,
                    )
                )

            await db.commit()
            return IncidentRecord.model_validate(row)

    # Team configuration

    async def get_escalation_policy(self, team_id: int) -> EscalationPolicyRecord | None:
        async with self._session("get_escalation_policy") as db:
            stmt = select(EscalationPolicy).where(EscalationPolicy.team_id == team_id)
            policy = (await db.execute(stmt)).scalar_one_or_none()
            return EscalationPolicyRecord.model_validate(policy) if policy else None

    async def get_channel(self, channel_id: int) -> AlertChannelRecord | None:
        async with self._session("get_channel") as db:
            channel = await db.get(AlertChannel, channel_id)
            return AlertChannelRecord.model_validate(channel) if channel else None

    async def list_immediate_channels(self, team_id: int) -> list[AlertChannelRecord]:
        async with self._session("list_immediate_channels") as db:
            stmt = (
                select(AlertChannel)
                .where(AlertChannel.team_id == team_id)
                .where(AlertChannel.active == True)  # noqa: E712
                .where(AlertChannel.immediate == True)  # noqa: E712
                .order_by(AlertChannel.id)
            )
            result = await db.execute(stmt)
            return [AlertChannelRecord.model_validate(c) for c in result.scalars().all()]

    async def get_active_maintenance(
        self,
        monitor_id: int,
        at: datetime,
    ) -> MaintenanceWindowRecord | None:
        async with self._session("get_active_maintenance") as db:
            stmt = select(MaintenanceWindow).where(
                MaintenanceWindow.active == True  # noqa: E712
            )
            result = await db.execute(stmt)
            # monitor_ids is a JSON list, so membership is checked here
            for row in result.scalars().all():
                window = MaintenanceWindowRecord.model_validate(row)
                if window.covers(monitor_id, at):
                    return window
            return None
