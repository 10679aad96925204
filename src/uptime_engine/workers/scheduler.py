from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from uptime_engine.schemas.monitor import MonitorRecord
from uptime_engine.services.capabilities import AllowAllCapabilities, CapabilityOracle
from uptime_engine.utils.exceptions import DuplicateRegistrationError, SchedulingError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckJob:
    """Job descriptor; workers re-read the monitor before probing."""

    monitor_id: int
    enqueued_at: datetime
    manual: bool = False


class MonitorScheduler:
    """
    One timer task per registered monitor, emitting jobs onto a shared queue.

    At most one check per monitor is in flight: a tick that fires while the
    previous job is queued or running is dropped and the timer carries on.
    """

    def __init__(
        self,
        queue: asyncio.Queue[CheckJob],
        capabilities: CapabilityOracle | None = None,
        jitter_ratio: float = 0.1,
    ):
        self.queue = queue
        self.capabilities = capabilities or AllowAllCapabilities()
        self.jitter_ratio = jitter_ratio
        self.running = True
        self._timers: dict[int, asyncio.Task[None]] = {}
        self._intervals: dict[int, int] = {}
        self._in_flight: set[int] = set()
        self.dropped_ticks = 0

    async def register(self, monitor: MonitorRecord) -> None:
        """
        Start the monitor's timer.

        Raises:
            DuplicateRegistrationError: monitor already has a timer
            SchedulingError: monitor inactive, interval not allowed, or scheduler stopped
        """
        if not self.running:
            raise SchedulingError(monitor.id, "scheduler is stopped")
        if monitor.id in self._timers:
            raise DuplicateRegistrationError(monitor.id)
        if not monitor.active:
            raise SchedulingError(monitor.id, "monitor is inactive")
        if not await self.capabilities.is_interval_allowed(
            monitor.team_id, monitor.interval_seconds
        ):
            raise SchedulingError(
                monitor.id,
                f"interval {monitor.interval_seconds}s not allowed by plan",
            )
        # The capability call yields; another register may have won the race
        if monitor.id in self._timers:
            raise DuplicateRegistrationError(monitor.id)

        interval = monitor.interval_seconds
        first_delay = self.first_delay(interval)

        self._intervals[monitor.id] = interval
        self._timers[monitor.id] = asyncio.create_task(
            self._timer(monitor.id, interval, first_delay),
            name=f"monitor-timer-{monitor.id}",
        )
        logger.info(
            "monitor_registered",
            monitor_id=monitor.id,
            interval_seconds=interval,
            first_delay_seconds=round(first_delay, 2),
        )

    def first_delay(self, interval: int) -> float:
        """Interval scaled by a random factor in ``1 +- jitter_ratio``. Later ticks use the plain interval."""
        jitter = random.uniform(-self.jitter_ratio, self.jitter_ratio)
        return max(0.0, interval * (1 + jitter))

    def unregister(self, monitor_id: int) -> bool:
        """Cancel the monitor's timer. A job already dispatched runs but its result is dropped."""
        task = self._timers.pop(monitor_id, None)
        self._intervals.pop(monitor_id, None)
        if task is None:
            return False
        task.cancel()
        logger.info("monitor_unregistered", monitor_id=monitor_id)
        return True

    async def reschedule(self, monitor: MonitorRecord) -> bool:
        """
        Re-register with the monitor's current config.

        An inactive monitor is only unregistered. Returns whether the
        monitor ends up registered.
        """
        self.unregister(monitor.id)
        if not monitor.active:
            return False
        await self.register(monitor)
        return True

    def run_now(self, monitor_id: int) -> bool:
        """
        Queue an immediate check for a registered monitor.

        Returns False when a check for it is already in flight.
        """
        if monitor_id not in self._timers:
            raise SchedulingError(monitor_id, "monitor is not registered")
        return self._emit(monitor_id, manual=True)

    def is_registered(self, monitor_id: int) -> bool:
        return monitor_id in self._timers

    def is_in_flight(self, monitor_id: int) -> bool:
        return monitor_id in self._in_flight

    def interval_of(self, monitor_id: int) -> int | None:
        return self._intervals.get(monitor_id)

    @property
    def registered_ids(self) -> list[int]:
        return list(self._timers)

    def job_done(self, monitor_id: int) -> None:
        """Called by the worker pool once a job finished or was discarded."""
        self._in_flight.discard(monitor_id)

    def _emit(self, monitor_id: int, manual: bool = False) -> bool:
        if not self.running:
            return False
        if monitor_id in self._in_flight:
            self.dropped_ticks += 1
            logger.info("check_tick_dropped", monitor_id=monitor_id, manual=manual)
            return False
        self._in_flight.add(monitor_id)
        self.queue.put_nowait(
            CheckJob(
                monitor_id=monitor_id,
                enqueued_at=datetime.now(timezone.utc),
                manual=manual,
            )
        )
        return True

    async def _timer(self, monitor_id: int, interval: int, first_delay: float) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + first_delay
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            self._emit(monitor_id)
            next_at += interval
            # Missed ticks (event loop stalled) are skipped, not replayed
            if next_at < loop.time():
                next_at = loop.time() + interval

    async def stop(self) -> None:
        """Stop emitting jobs and cancel every timer."""
        self.running = False
        timers = list(self._timers.values())
        self._timers.clear()
        self._intervals.clear()
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
        logger.info("scheduler_stopped", timers=len(timers))

    def __len__(self) -> int:
        return len(self._timers)
