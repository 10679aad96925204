from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog

from uptime_engine.schemas.check import CheckResultCreate
from uptime_engine.schemas.monitor import MonitorRecord, MonitorStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DownTransition:
    """Monitor confirmed DOWN (or DEGRADED) by ``result``."""

    monitor_id: int
    status: MonitorStatus
    result: CheckResultCreate
    at: datetime


@dataclass(frozen=True)
class UpTransition:
    """Monitor recovered after the recovery window elapsed."""

    monitor_id: int
    at: datetime


@dataclass(frozen=True)
class Evaluation:
    accepted: bool
    transition: DownTransition | UpTransition | None = None


class StatusEvaluator:
    """
    Debounce state machine for one monitor's check results.

    ``evaluate`` mutates the monitor's state fields in place. Callers must
    serialize calls per monitor and feed results in chronological order;
    results not newer than ``last_checked_at`` are rejected as stale.

    Failure side: ``confirmation_threshold`` N means N+1 consecutive
    failures are needed before DOWN. Recovery side: the recovery window
    is measured from the timestamp of the first success after DOWN, and
    any failure in between restarts it.
    """

    def evaluate(self, monitor: MonitorRecord, result: CheckResultCreate) -> Evaluation:
        if monitor.last_checked_at is not None and result.checked_at <= monitor.last_checked_at:
            logger.debug(
                "stale_check_result_discarded",
                monitor_id=monitor.id,
                checked_at=result.checked_at.isoformat(),
                last_checked_at=monitor.last_checked_at.isoformat(),
            )
            return Evaluation(accepted=False)

        monitor.last_checked_at = result.checked_at

        if result.success:
            return Evaluation(accepted=True, transition=self._on_success(monitor, result))
        return Evaluation(accepted=True, transition=self._on_failure(monitor, result))

    def _on_failure(
        self,
        monitor: MonitorRecord,
        result: CheckResultCreate,
    ) -> DownTransition | None:
        target = (
            MonitorStatus.DEGRADED
            if result.reported_status == MonitorStatus.DEGRADED
            else MonitorStatus.DOWN
        )
        monitor.consecutive_failures += 1
        monitor.recovery_started_at = None

        if monitor.is_failing:
            # down <-> degraded switch from a webhook push, same incident
            if result.reported_status is not None and monitor.current_status != target:
                logger.info(
                    "monitor_failure_mode_changed",
                    monitor_id=monitor.id,
                    from_status=monitor.current_status.value,
                    to_status=target.value,
                )
                monitor.current_status = target
            return None

        if monitor.consecutive_failures <= monitor.confirmation_threshold:
            logger.info(
                "monitor_failure_unconfirmed",
                monitor_id=monitor.id,
                consecutive_failures=monitor.consecutive_failures,
                confirmation_threshold=monitor.confirmation_threshold,
            )
            return None

        previous = monitor.current_status
        monitor.current_status = target
        logger.warning(
            "monitor_down",
            monitor_id=monitor.id,
            from_status=previous.value,
            to_status=target.value,
            consecutive_failures=monitor.consecutive_failures,
        )
        return DownTransition(
            monitor_id=monitor.id,
            status=target,
            result=result,
            at=result.checked_at,
        )

    def _on_success(
        self,
        monitor: MonitorRecord,
        result: CheckResultCreate,
    ) -> UpTransition | None:
        if not monitor.is_failing:
            if monitor.current_status == MonitorStatus.UNKNOWN:
                logger.info("monitor_first_up", monitor_id=monitor.id)
            monitor.current_status = MonitorStatus.UP
            monitor.consecutive_failures = 0
            return None

        if monitor.recovery_started_at is None:
            monitor.recovery_started_at = result.checked_at

        elapsed = (result.checked_at - monitor.recovery_started_at).total_seconds()
        if elapsed < monitor.recovery_window_seconds:
            logger.info(
                "monitor_recovery_pending",
                monitor_id=monitor.id,
                elapsed_seconds=round(elapsed, 2),
                recovery_window_seconds=monitor.recovery_window_seconds,
            )
            return None

        previous = monitor.current_status
        monitor.current_status = MonitorStatus.UP
        monitor.consecutive_failures = 0
        monitor.recovery_started_at = None
        logger.info(
            "monitor_up",
            monitor_id=monitor.id,
            from_status=previous.value,
        )
        return UpTransition(monitor_id=monitor.id, at=result.checked_at)
