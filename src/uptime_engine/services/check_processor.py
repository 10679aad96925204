from __future__ import annotations

import asyncio

import structlog

from uptime_engine.schemas.check import CheckResultCreate
from uptime_engine.schemas.monitor import STATE_FIELDS, MonitorRecord
from uptime_engine.services.incident_service import IncidentManager
from uptime_engine.services.status_evaluator import (
    DownTransition,
    Evaluation,
    StatusEvaluator,
    UpTransition,
)
from uptime_engine.storage.base import StoragePort
from uptime_engine.storage.retry import retry_write
from uptime_engine.utils.exceptions import StorageError
from uptime_engine.utils.locks import KeyedLock

logger = structlog.get_logger(__name__)


class CheckProcessor:
    """
    Feeds check results through the status evaluator, one monitor at a time.

    Monitor state lives in an in-process cache that wins over whatever
    storage returns: config is re-read before each check, state is overlaid
    from the cache. Transitions are handed to the incident manager while
    the monitor lock is still held so DOWN and UP for the same monitor
    cannot reorder.
    """

    def __init__(
        self,
        store: StoragePort,
        incidents: IncidentManager,
        evaluator: StatusEvaluator | None = None,
        write_retries: int = 3,
        retry_base_seconds: float = 0.5,
    ):
        self.store = store
        self.incidents = incidents
        self.evaluator = evaluator or StatusEvaluator()
        self.write_retries = write_retries
        self.retry_base_seconds = retry_base_seconds
        self.locks = KeyedLock()
        self._states: dict[int, MonitorRecord] = {}
        self._background: set[asyncio.Task[None]] = set()

    def _overlay_state(self, monitor: MonitorRecord) -> MonitorRecord:
        cached = self._states.get(monitor.id)
        merged = monitor.model_copy(deep=True)
        if cached is not None:
            for field in STATE_FIELDS:
                setattr(merged, field, getattr(cached, field))
        return merged

    def cached_state(self, monitor_id: int) -> MonitorRecord | None:
        state = self._states.get(monitor_id)
        return state.model_copy(deep=True) if state else None

    def forget(self, monitor_id: int) -> None:
        self._states.pop(monitor_id, None)

    async def process(
        self,
        monitor: MonitorRecord,
        result: CheckResultCreate,
        heartbeat: bool = False,
    ) -> Evaluation:
        """
        Evaluate one result for ``monitor`` (freshly read config).

        ``heartbeat`` marks the result as a heartbeat ping, which also moves
        ``last_heartbeat_at`` forward.
        """
        async with self.locks.hold(monitor.id):
            state = self._overlay_state(monitor)
            evaluation = self.evaluator.evaluate(state, result)
            if not evaluation.accepted:
                return evaluation

            if heartbeat and (
                state.last_heartbeat_at is None or result.checked_at > state.last_heartbeat_at
            ):
                state.last_heartbeat_at = result.checked_at

            self._states[monitor.id] = state
            self._persist_result(result)
            await self._persist_state(state)

            transition = evaluation.transition
            if isinstance(transition, DownTransition):
                await self.incidents.on_down(state, transition.result)
            elif isinstance(transition, UpTransition):
                await self.incidents.on_up(state, transition.at)

            return evaluation

    async def _persist_state(self, state: MonitorRecord) -> None:
        snapshot = state.model_copy(deep=True)
        try:
            await retry_write(
                "save_monitor_state",
                lambda: self.store.save_monitor_state(snapshot),
                retries=self.write_retries,
                base_delay=self.retry_base_seconds,
            )
        except StorageError:
            # Cache keeps the state; the next accepted result writes it again
            logger.error("monitor_state_not_persisted", monitor_id=state.id)

    def _persist_result(self, result: CheckResultCreate) -> None:
        # Fire and forget
        async def _write() -> None:
            try:
                await retry_write(
                    "save_check_result",
                    lambda: self.store.save_check_result(result),
                    retries=self.write_retries,
                    base_delay=self.retry_base_seconds,
                )
            except StorageError:
                logger.error("check_result_dropped", monitor_id=result.monitor_id)

        task = asyncio.create_task(_write())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def flush(self) -> None:
        """Wait for pending check result writes."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._states)
