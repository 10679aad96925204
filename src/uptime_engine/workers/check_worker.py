from __future__ import annotations

import asyncio

import structlog

from uptime_engine.schemas.monitor import MonitorType
from uptime_engine.services.check_processor import CheckProcessor
from uptime_engine.services.prober import ProberService
from uptime_engine.storage.base import StoragePort
from uptime_engine.utils.exceptions import StorageError
from uptime_engine.workers.scheduler import CheckJob, MonitorScheduler

logger = structlog.get_logger(__name__)


class CheckWorkerPool:
    """Fixed pool of worker tasks consuming check jobs from the scheduler's queue."""

    def __init__(
        self,
        queue: asyncio.Queue[CheckJob],
        scheduler: MonitorScheduler,
        store: StoragePort,
        prober: ProberService,
        processor: CheckProcessor,
        concurrency: int = 100,
    ):
        self.queue = queue
        self.scheduler = scheduler
        self.store = store
        self.prober = prober
        self.processor = processor
        self.concurrency = concurrency
        self.running = False
        self.busy = 0
        self.completed = 0
        self._workers: list[asyncio.Task[None]] = []

    def start(self) -> None:
        """Spawn the worker tasks."""
        if self.running:
            return
        self.running = True
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"check-worker-{index}")
            for index in range(self.concurrency)
        ]
        logger.info("check_workers_started", concurrency=self.concurrency)

    async def _worker(self, index: int) -> None:
        while True:
            job = await self.queue.get()
            self.busy += 1
            try:
                await self.run_job(job)
            except Exception as exc:
                logger.error(
                    "check_job_failed",
                    worker=index,
                    monitor_id=job.monitor_id,
                    error=str(exc),
                    exc_info=True,
                )
            finally:
                self.busy -= 1
                self.scheduler.job_done(job.monitor_id)
                self.queue.task_done()

    async def run_job(self, job: CheckJob) -> None:
        """Re-read the monitor, probe it and feed the result to the processor."""
        try:
            monitor = await self.store.get_monitor(job.monitor_id)
        except StorageError as exc:
            logger.error("check_job_monitor_lookup_failed", monitor_id=job.monitor_id, error=str(exc))
            return

        if monitor is None or not monitor.active:
            logger.info("check_job_discarded", monitor_id=job.monitor_id, reason="monitor gone")
            return
        if monitor.monitor_type != MonitorType.HTTP:
            logger.info("check_job_discarded", monitor_id=job.monitor_id, reason="passive monitor")
            return

        result = await self.prober.probe(monitor)

        # Unregistered while the probe was running
        if not self.scheduler.is_registered(job.monitor_id):
            logger.info(
                "check_result_discarded",
                monitor_id=job.monitor_id,
                reason="monitor unregistered",
            )
            return

        await self.processor.process(monitor, result)
        self.completed += 1

    async def stop(self, grace_seconds: float = 30.0) -> None:
        """
        Drop queued jobs, give running probes ``grace_seconds`` to finish,
        then cancel the workers.
        """
        self.running = False
        dropped = 0
        while True:
            try:
                job = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.scheduler.job_done(job.monitor_id)
            self.queue.task_done()
            dropped += 1

        try:
            await asyncio.wait_for(self.queue.join(), timeout=grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("check_workers_grace_expired", busy=self.busy)

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("check_workers_stopped", dropped_jobs=dropped)
