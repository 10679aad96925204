from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timezone

import structlog

from uptime_engine.schemas.check import CheckResultCreate, ErrorClassification
from uptime_engine.schemas.monitor import MonitorRecord, MonitorStatus, MonitorType
from uptime_engine.schemas.webhook import WebhookStatusUpdate
from uptime_engine.services.check_processor import CheckProcessor
from uptime_engine.storage.base import StoragePort
from uptime_engine.utils.exceptions import (
    MonitorNotFoundError,
    WebhookRejectedError,
    WebhookSignatureError,
)

logger = structlog.get_logger(__name__)


def sign_body(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of a raw request body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class HeartbeatService:
    """Status pushes, heartbeats and heartbeat expiry for webhook monitors."""

    def __init__(
        self,
        store: StoragePort,
        processor: CheckProcessor,
        grace_seconds: int = 60,
    ):
        self.store = store
        self.processor = processor
        self.grace_seconds = grace_seconds

    async def _resolve(self, token: str) -> MonitorRecord:
        monitor = await self.store.get_monitor_by_webhook_token(token)
        if monitor is None or monitor.monitor_type != MonitorType.WEBHOOK:
            raise MonitorNotFoundError(token)
        if not monitor.active:
            raise WebhookRejectedError(monitor.id, "monitor is inactive")
        return monitor

    def verify_signature(
        self,
        monitor: MonitorRecord,
        raw_body: bytes,
        signature: str | None,
    ) -> None:
        """Check ``X-Webhook-Signature`` when the monitor has a secret."""
        if not monitor.webhook_secret:
            return
        if not signature:
            raise WebhookSignatureError(monitor.id, "missing signature")
        provided = signature.strip()
        if provided.startswith("sha256="):
            provided = provided[len("sha256="):]
        expected = sign_body(monitor.webhook_secret, raw_body)
        if not hmac.compare_digest(provided.lower(), expected):
            raise WebhookSignatureError(monitor.id, "invalid signature")

    async def push_status(
        self,
        token: str,
        update: WebhookStatusUpdate,
        raw_body: bytes = b"",
        signature: str | None = None,
        at: datetime | None = None,
    ) -> MonitorRecord:
        """Feed a pushed status through the evaluator. A push also counts as a heartbeat."""
        monitor = await self._resolve(token)
        self.verify_signature(monitor, raw_body, signature)

        reported = MonitorStatus(update.status)
        success = reported == MonitorStatus.UP
        result = CheckResultCreate(
            monitor_id=monitor.id,
            success=success,
            reported_status=reported,
            error_message=None if success else (update.message or f"Reported {update.status}"),
            checked_at=at or datetime.now(timezone.utc),
        )
        await self.processor.process(monitor, result, heartbeat=True)

        logger.info(
            "webhook_status_received",
            monitor_id=monitor.id,
            status=update.status,
        )
        return self.processor.cached_state(monitor.id) or monitor

    async def heartbeat(
        self,
        token: str,
        raw_body: bytes = b"",
        signature: str | None = None,
        at: datetime | None = None,
    ) -> MonitorRecord:
        """Record a heartbeat ping as a successful check."""
        monitor = await self._resolve(token)
        self.verify_signature(monitor, raw_body, signature)

        result = CheckResultCreate(
            monitor_id=monitor.id,
            success=True,
            reported_status=MonitorStatus.UP,
            checked_at=at or datetime.now(timezone.utc),
        )
        await self.processor.process(monitor, result, heartbeat=True)
        logger.debug("heartbeat_received", monitor_id=monitor.id)
        return self.processor.cached_state(monitor.id) or monitor

    async def sweep_expired(self, now: datetime | None = None) -> list[int]:
        """
        Report a failure for every heartbeat monitor that went quiet.

        A monitor is overdue once ``heartbeat_interval + grace`` seconds pass
        without a heartbeat. Monitors that never sent one are left alone.

        Returns:
            Ids of monitors that received a failure result
        """
        now = now or datetime.now(timezone.utc)
        expired: list[int] = []

        for monitor in await self.store.list_heartbeat_monitors():
            state = self.processor.cached_state(monitor.id) or monitor
            if state.last_heartbeat_at is None or state.is_failing:
                continue

            silent_for = (now - state.last_heartbeat_at).total_seconds()
            if silent_for <= monitor.heartbeat_interval_seconds + self.grace_seconds:
                continue

            logger.warning(
                "heartbeat_expired",
                monitor_id=monitor.id,
                silent_seconds=int(silent_for),
            )
            result = CheckResultCreate(
                monitor_id=monitor.id,
                success=False,
                reported_status=MonitorStatus.DOWN,
                error_classification=ErrorClassification.TIMEOUT,
                error_message=f"Heartbeat expired ({int(silent_for)}s without a signal)",
                checked_at=now,
            )
            await self.processor.process(monitor, result)
            expired.append(monitor.id)

        return expired
