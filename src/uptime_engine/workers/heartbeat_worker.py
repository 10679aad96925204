from __future__ import annotations

import asyncio

import structlog

from uptime_engine.services.heartbeat_service import HeartbeatService

logger = structlog.get_logger(__name__)


class HeartbeatWorker:
    """Periodically marks webhook monitors whose heartbeats stopped."""

    def __init__(
        self,
        service: HeartbeatService,
        check_interval_seconds: float = 60,
    ):
        self.service = service
        self.check_interval_seconds = check_interval_seconds
        self.running = False

    async def start(self) -> None:
        """Start the heartbeat expiry loop."""
        self.running = True
        logger.info("heartbeat_worker_started", interval=self.check_interval_seconds)

        while self.running:
            try:
                expired = await self.service.sweep_expired()
                if expired:
                    logger.info("heartbeats_expired", monitor_ids=expired)
            except Exception as exc:
                logger.error("heartbeat_worker_error", error=str(exc), exc_info=True)
            await asyncio.sleep(self.check_interval_seconds)

    async def stop(self) -> None:
        """Stop the heartbeat worker."""
        self.running = False
        logger.info("heartbeat_worker_stopped")
