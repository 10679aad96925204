from __future__ import annotations

import asyncio
import random
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from uptime_engine.alerting.base import ChannelAdapter, NotificationKind, NotificationPayload
from uptime_engine.alerting.factory import AdapterDefaults, build_adapter
from uptime_engine.schemas.channel import AlertChannelRecord
from uptime_engine.schemas.incident import IncidentRecord
from uptime_engine.schemas.monitor import MonitorRecord
from uptime_engine.schemas.ssl import SSLInfo
from uptime_engine.services.capabilities import AllowAllCapabilities, CapabilityOracle
from uptime_engine.storage.base import StoragePort
from uptime_engine.utils.exceptions import (
    ChannelConfigError,
    StorageError,
    TransientDeliveryError,
)

logger = structlog.get_logger(__name__)


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryRecord:
    """Outcome of delivering one notification to one channel."""

    channel_id: int
    team_id: int
    channel_type: str
    kind: NotificationKind
    incident_id: int
    attempts: int = 0
    outcome: DeliveryOutcome = DeliveryOutcome.FAILED
    error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "channel_type": self.channel_type,
            "kind": self.kind.value,
            "incident_id": self.incident_id,
            "attempts": self.attempts,
            "outcome": self.outcome.value,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
        }


def build_incident_payload(
    incident: IncidentRecord,
    monitor: MonitorRecord,
    kind: NotificationKind,
    now: datetime | None = None,
) -> NotificationPayload:
    """Normalized payload for OPENED, ESCALATED and RESOLVED notifications."""
    now = now or datetime.now(timezone.utc)
    if kind == NotificationKind.RESOLVED:
        title = f"{monitor.name} is back up"
        minutes = incident.duration_seconds(now) // 60
        message = f"Resolved after {minutes} min. Cause was: {incident.cause or 'unknown'}"
        status = "up"
    elif kind == NotificationKind.ESCALATED:
        title = f"{monitor.name} is still down (unacknowledged)"
        message = incident.cause or ""
        status = monitor.current_status.value
    else:
        title = incident.title
        message = incident.cause or ""
        status = monitor.current_status.value

    return NotificationPayload(
        kind=kind,
        team_id=monitor.team_id,
        monitor_id=monitor.id,
        monitor_name=monitor.name,
        monitor_url=monitor.url,
        status=status,
        title=title,
        message=message,
        timestamp=now.isoformat(),
        incident_id=incident.id or 0,
        incident_status=incident.status.value,
        cause=incident.cause,
        started_at=incident.started_at.isoformat(),
        resolved_at=incident.resolved_at.isoformat() if incident.resolved_at else None,
    )


def build_ssl_payload(
    monitor: MonitorRecord,
    info: SSLInfo,
    now: datetime | None = None,
) -> NotificationPayload:
    """Normalized payload for certificate expiry warnings."""
    now = now or datetime.now(timezone.utc)
    if info.error:
        title = f"SSL certificate problem on {monitor.name}"
        message = info.error
    elif info.days_until_expiry is not None and info.days_until_expiry < 0:
        title = f"SSL certificate expired on {monitor.name}"
        message = f"Expired {-info.days_until_expiry} days ago"
    else:
        title = f"SSL certificate for {monitor.name} expires soon"
        message = f"Expires in {info.days_until_expiry} days"
    if info.valid_to is not None:
        message += f" (valid to {info.valid_to.isoformat()})"

    return NotificationPayload(
        kind=NotificationKind.SSL_EXPIRY,
        team_id=monitor.team_id,
        monitor_id=monitor.id,
        monitor_name=monitor.name,
        monitor_url=monitor.url,
        status="ssl",
        title=title,
        message=message,
        timestamp=now.isoformat(),
    )


class NotificationDispatcher:
    """
    Fans notifications out to channels in background tasks.

    Each delivery resolves the adapter by channel type and retries
    transient failures with exponential backoff plus jitter. Configuration
    errors are recorded once and never retried. Nothing raised by a
    delivery reaches the caller.
    """

    def __init__(
        self,
        store: StoragePort,
        capabilities: CapabilityOracle | None = None,
        defaults: AdapterDefaults | None = None,
        max_attempts: int = 3,
        backoff_base_seconds: float = 1.0,
        adapter_factory: Callable[[AlertChannelRecord, AdapterDefaults], ChannelAdapter]
        | None = None,
        history_size: int = 1000,
    ):
        self.store = store
        self.capabilities = capabilities or AllowAllCapabilities()
        self.defaults = defaults or AdapterDefaults()
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.adapter_factory = adapter_factory or build_adapter
        self._history: deque[DeliveryRecord] = deque(maxlen=history_size)
        self._tasks: set[asyncio.Task[DeliveryRecord]] = set()

    def notify(
        self,
        channel: AlertChannelRecord,
        payload: NotificationPayload,
    ) -> asyncio.Task[DeliveryRecord]:
        """Schedule delivery to one channel and return immediately."""
        task = asyncio.create_task(
            self.deliver(channel, payload),
            name=f"notify-{channel.id}-{payload.kind.value}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def notify_many(
        self,
        channels: Iterable[AlertChannelRecord],
        payload: NotificationPayload,
    ) -> list[asyncio.Task[DeliveryRecord]]:
        return [self.notify(channel, payload) for channel in channels]

    async def notify_channel_ids(
        self,
        team_id: int,
        channel_ids: Iterable[int],
        payload: NotificationPayload,
    ) -> list[asyncio.Task[DeliveryRecord]]:
        """Resolve channel ids through storage, then schedule delivery to each."""
        channels: list[AlertChannelRecord] = []
        for channel_id in channel_ids:
            try:
                channel = await self.store.get_channel(channel_id)
            except StorageError as exc:
                logger.error("channel_lookup_failed", channel_id=channel_id, error=str(exc))
                continue
            if channel is None or channel.team_id != team_id:
                logger.warning("channel_not_found", channel_id=channel_id, team_id=team_id)
                continue
            channels.append(channel)
        return self.notify_many(channels, payload)

    async def deliver(
        self,
        channel: AlertChannelRecord,
        payload: NotificationPayload,
    ) -> DeliveryRecord:
        """Deliver to one channel with retries. Always returns a DeliveryRecord."""
        record = DeliveryRecord(
            channel_id=channel.id,
            team_id=channel.team_id,
            channel_type=channel.channel_type.value,
            kind=payload.kind,
            incident_id=payload.incident_id,
        )
        self._history.append(record)

        if not channel.active:
            record.outcome = DeliveryOutcome.SKIPPED
            record.error = "channel inactive"
            logger.info("notification_skipped", channel_id=channel.id, reason=record.error)
            return record

        try:
            allowed = await self.capabilities.is_channel_allowed(
                channel.team_id, channel.channel_type
            )
        except Exception as exc:
            logger.error(
                "capability_check_failed",
                channel_id=channel.id,
                error=str(exc),
                exc_info=True,
            )
            allowed = False
        if not allowed:
            record.outcome = DeliveryOutcome.SKIPPED
            record.error = "channel type not allowed by plan"
            logger.info("notification_skipped", channel_id=channel.id, reason=record.error)
            return record

        try:
            adapter = self.adapter_factory(channel, self.defaults)
        except ChannelConfigError as exc:
            record.attempts = 1
            record.error = exc.reason
            logger.error(
                "notification_channel_misconfigured",
                channel_id=channel.id,
                channel_type=channel.channel_type.value,
                error=exc.reason,
            )
            return record

        while record.attempts < self.max_attempts:
            record.attempts += 1
            try:
                await adapter.send(payload)
            except ChannelConfigError as exc:
                record.error = exc.reason
                logger.error(
                    "notification_rejected",
                    channel_id=channel.id,
                    channel_type=channel.channel_type.value,
                    incident_id=payload.incident_id,
                    error=exc.reason,
                )
                return record
            except TransientDeliveryError as exc:
                record.error = exc.reason
                if record.attempts >= self.max_attempts:
                    break
                backoff = self.backoff_base_seconds * (
                    2 ** (record.attempts - 1) + random.uniform(0, 1)
                )
                logger.warning(
                    "notification_retry",
                    channel_id=channel.id,
                    attempt=record.attempts,
                    backoff_seconds=round(backoff, 2),
                    error=exc.reason,
                )
                await asyncio.sleep(backoff)
            except Exception as exc:
                # Adapter bug; recorded, never propagated
                record.error = f"Unexpected error: {exc}"
                logger.error(
                    "notification_unexpected_error",
                    channel_id=channel.id,
                    error=str(exc),
                    exc_info=True,
                )
                return record
            else:
                record.outcome = DeliveryOutcome.DELIVERED
                record.error = None
                logger.info(
                    "notification_delivered",
                    channel_id=channel.id,
                    channel_type=channel.channel_type.value,
                    kind=payload.kind.value,
                    incident_id=payload.incident_id,
                    attempts=record.attempts,
                )
                return record

        logger.error(
            "notification_failed",
            channel_id=channel.id,
            channel_type=channel.channel_type.value,
            incident_id=payload.incident_id,
            attempts=record.attempts,
            error=record.error,
        )
        return record

    def deliveries_for_team(self, team_id: int) -> list[DeliveryRecord]:
        return [r for r in self._history if r.team_id == team_id]

    def deliveries_for_incident(self, incident_id: int) -> list[DeliveryRecord]:
        return [r for r in self._history if r.incident_id == incident_id]

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight deliveries, cancelling whatever is left after ``timeout``."""
        if not self._tasks:
            return
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("notifications_cancelled", count=len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)
