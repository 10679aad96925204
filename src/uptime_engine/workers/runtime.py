from __future__ import annotations

import asyncio
from typing import Any

import structlog

from uptime_engine.alerting.dispatcher import NotificationDispatcher
from uptime_engine.alerting.factory import AdapterDefaults
from uptime_engine.config import Settings
from uptime_engine.schemas.monitor import MonitorRecord, MonitorType
from uptime_engine.schemas.ssl import SSLInfo
from uptime_engine.services.capabilities import CapabilityOracle, SettingsCapabilities
from uptime_engine.services.check_processor import CheckProcessor
from uptime_engine.services.escalation_engine import EscalationEngine
from uptime_engine.services.heartbeat_service import HeartbeatService
from uptime_engine.services.incident_service import IncidentManager
from uptime_engine.services.prober import ProberService
from uptime_engine.services.ssl_inspector import SSLInspector
from uptime_engine.storage.base import StoragePort
from uptime_engine.utils.exceptions import MonitorNotFoundError, SchedulingError
from uptime_engine.workers.check_worker import CheckWorkerPool
from uptime_engine.workers.heartbeat_worker import HeartbeatWorker
from uptime_engine.workers.scheduler import CheckJob, MonitorScheduler
from uptime_engine.workers.ssl_worker import SSLSweepWorker

logger = structlog.get_logger(__name__)


class MonitoringRuntime:
    """Wires the engine together and owns its startup and shutdown."""

    def __init__(
        self,
        store: StoragePort,
        settings: Settings,
        capabilities: CapabilityOracle | None = None,
        dispatcher: NotificationDispatcher | None = None,
        prober: ProberService | None = None,
        ssl_inspector: SSLInspector | None = None,
    ):
        self.store = store
        self.settings = settings
        self.capabilities = capabilities or SettingsCapabilities(
            min_check_interval=settings.min_check_interval,
            allowed_channel_types=settings.allowed_channel_types,
        )
        self.dispatcher = dispatcher or NotificationDispatcher(
            store,
            capabilities=self.capabilities,
            defaults=AdapterDefaults.from_settings(settings),
            max_attempts=settings.notification_max_attempts,
            backoff_base_seconds=settings.notification_backoff_base_seconds,
        )
        self.escalation = EscalationEngine(store, self.dispatcher)
        self.incidents = IncidentManager(
            store,
            self.dispatcher,
            self.escalation,
            write_retries=settings.storage_write_retries,
            retry_base_seconds=settings.storage_retry_base_seconds,
        )
        self.processor = CheckProcessor(
            store,
            self.incidents,
            write_retries=settings.storage_write_retries,
            retry_base_seconds=settings.storage_retry_base_seconds,
        )
        self.queue: asyncio.Queue[CheckJob] = asyncio.Queue()
        self.scheduler = MonitorScheduler(
            self.queue,
            capabilities=self.capabilities,
            jitter_ratio=settings.scheduler_jitter_ratio,
        )
        self.prober = prober or ProberService(user_agent=settings.user_agent)
        self.ssl_inspector = ssl_inspector or SSLInspector(
            timeout_seconds=settings.ssl_timeout_seconds,
            ca_file=settings.ssl_ca_file,
        )
        self.pool = CheckWorkerPool(
            self.queue,
            self.scheduler,
            store,
            self.prober,
            self.processor,
            concurrency=settings.max_concurrent_checks,
        )
        self.heartbeats = HeartbeatService(
            store,
            self.processor,
            grace_seconds=settings.heartbeat_grace_seconds,
        )
        self.heartbeat_worker = HeartbeatWorker(
            self.heartbeats,
            check_interval_seconds=settings.heartbeat_check_interval_seconds,
        )
        self.ssl_worker = SSLSweepWorker(
            store,
            self.ssl_inspector,
            self.dispatcher,
            interval_seconds=settings.ssl_check_interval_hours * 3600,
            alert_days=settings.ssl_alert_days,
        )
        self.started = False
        self._background: list[asyncio.Task[None]] = []

    async def start(self, background_workers: bool = True) -> None:
        """
        Resume open incidents, register every active HTTP monitor and start
        the worker pool. ``background_workers`` also starts the SSL sweep and
        heartbeat expiry loops.
        """
        incidents = await self.incidents.load_open_incidents()
        await self.escalation.resume(incidents)

        registered = 0
        for monitor in await self.store.list_active_monitors():
            if monitor.monitor_type != MonitorType.HTTP:
                continue
            try:
                await self.scheduler.register(monitor)
                registered += 1
            except SchedulingError as exc:
                logger.warning("monitor_registration_skipped", monitor_id=monitor.id, reason=exc.reason)

        self.pool.start()
        if background_workers:
            self._background = [
                asyncio.create_task(self.ssl_worker.start(), name="ssl-sweep"),
                asyncio.create_task(self.heartbeat_worker.start(), name="heartbeat-expiry"),
            ]
        self.started = True
        logger.info(
            "runtime_started",
            monitors=registered,
            open_incidents=len(incidents),
        )

    async def stop(self) -> None:
        """Stop accepting jobs, let in-flight probes finish within the grace period, then exit."""
        if not self.started:
            return
        self.started = False
        grace = self.settings.shutdown_grace_seconds

        await self.scheduler.stop()
        await self.pool.stop(grace_seconds=grace)

        await self.ssl_worker.stop()
        await self.heartbeat_worker.stop()
        for task in self._background:
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._background = []

        await self.escalation.close()
        await self.processor.flush()
        await self.dispatcher.drain(timeout=grace)
        logger.info("runtime_stopped")

    # Scheduler integration, called by the CRUD service through the API

    async def _require_monitor(self, monitor_id: int) -> MonitorRecord:
        monitor = await self.store.get_monitor(monitor_id)
        if monitor is None:
            raise MonitorNotFoundError(monitor_id)
        return monitor

    async def schedule(self, monitor_id: int) -> bool:
        """Register or reschedule a monitor from its stored config."""
        monitor = await self._require_monitor(monitor_id)
        if monitor.monitor_type != MonitorType.HTTP:
            raise SchedulingError(monitor_id, "webhook monitors are not probed")
        if self.scheduler.is_registered(monitor_id):
            return await self.scheduler.reschedule(monitor)
        await self.scheduler.register(monitor)
        return True

    def unschedule(self, monitor_id: int, deleted: bool = False) -> bool:
        """
        Stop checking a monitor. A paused monitor keeps its open incident;
        a ``deleted`` one also drops it and stops its escalation.
        """
        removed = self.scheduler.unregister(monitor_id)
        self.processor.forget(monitor_id)
        if deleted:
            self.incidents.forget(monitor_id)
        return removed

    def run_now(self, monitor_id: int) -> bool:
        return self.scheduler.run_now(monitor_id)

    async def inspect_ssl(self, monitor_id: int) -> SSLInfo:
        monitor = await self._require_monitor(monitor_id)
        info = await self.ssl_inspector.inspect_tls(monitor.url)
        self.ssl_worker.latest[monitor_id] = info
        return info

    def stats(self) -> dict[str, Any]:
        return {
            "registered_monitors": len(self.scheduler),
            "queued_jobs": self.queue.qsize(),
            "busy_workers": self.pool.busy,
            "completed_checks": self.pool.completed,
            "dropped_ticks": self.scheduler.dropped_ticks,
            "tracked_monitors": len(self.processor),
            "open_incidents": len(self.incidents.open_incidents()),
            "escalating_incidents": len(self.escalation),
            "pending_notifications": self.dispatcher.pending,
        }
