from __future__ import annotations

import asyncio

import structlog

from uptime_engine.alerting.dispatcher import NotificationDispatcher, build_ssl_payload
from uptime_engine.schemas.monitor import MonitorRecord
from uptime_engine.schemas.ssl import SSLInfo
from uptime_engine.services.ssl_inspector import SSLInspector
from uptime_engine.storage.base import StoragePort
from uptime_engine.utils.exceptions import StorageError

logger = structlog.get_logger(__name__)


class SSLSweepWorker:
    """Low-frequency certificate sweep over monitors with ``check_ssl`` set."""

    def __init__(
        self,
        store: StoragePort,
        inspector: SSLInspector,
        dispatcher: NotificationDispatcher,
        interval_seconds: float = 12 * 3600,
        alert_days: int = 30,
    ):
        self.store = store
        self.inspector = inspector
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self.alert_days = alert_days
        self.running = False
        self.latest: dict[int, SSLInfo] = {}

    async def start(self) -> None:
        """Start the sweep loop."""
        self.running = True
        logger.info("ssl_worker_started", interval=self.interval_seconds)

        while self.running:
            try:
                await self.sweep()
            except Exception as exc:
                logger.error("ssl_worker_error", error=str(exc), exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    async def stop(self) -> None:
        """Stop the SSL worker."""
        self.running = False
        logger.info("ssl_worker_stopped")

    def needs_alert(self, info: SSLInfo) -> bool:
        if not info.valid:
            return True
        return info.days_until_expiry is not None and info.days_until_expiry <= self.alert_days

    async def sweep(self) -> int:
        """
        Inspect every HTTPS monitor with ``check_ssl`` once.

        Returns:
            Number of monitors an alert was sent for
        """
        monitors = await self.store.list_ssl_monitors()
        alerted = 0
        for monitor in monitors:
            if not monitor.url.lower().startswith("https://"):
                continue
            info = await self.inspector.inspect_tls(monitor.url)
            self.latest[monitor.id] = info

            logger.info(
                "ssl_checked",
                monitor_id=monitor.id,
                valid=info.valid,
                days_until_expiry=info.days_until_expiry,
                error=info.error,
            )

            if self.needs_alert(info) and await self._alert(monitor, info):
                alerted += 1

        logger.info("ssl_sweep_complete", monitors=len(monitors), alerted=alerted)
        return alerted

    async def _alert(self, monitor: MonitorRecord, info: SSLInfo) -> bool:
        if not monitor.alerts_enabled:
            return False
        try:
            channels = await self.store.list_immediate_channels(monitor.team_id)
        except StorageError as exc:
            logger.error("ssl_alert_channels_lookup_failed", monitor_id=monitor.id, error=str(exc))
            return False
        if not channels:
            return False
        self.dispatcher.notify_many(channels, build_ssl_payload(monitor, info))
        return True
