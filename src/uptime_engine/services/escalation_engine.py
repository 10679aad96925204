from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone

import structlog

from uptime_engine.alerting.base import NotificationKind
from uptime_engine.alerting.dispatcher import NotificationDispatcher, build_incident_payload
from uptime_engine.schemas.escalation import EscalationPolicyRecord
from uptime_engine.schemas.incident import IncidentRecord, IncidentStatus
from uptime_engine.schemas.monitor import MonitorRecord
from uptime_engine.storage.base import StoragePort
from uptime_engine.utils.exceptions import StorageError

logger = structlog.get_logger(__name__)

IncidentLookup = Callable[[int], Awaitable[IncidentRecord | None]]


class EscalationEngine:
    """
    Runs one timer task per open incident walking its team's escalation policy.

    Step delays count from the incident start, not from the previous step.
    Repeats of a step are interleaved with later steps by firing time.
    A step fires only while the incident is still ONGOING; acknowledging or
    resolving the incident cancels the task.
    """

    def __init__(
        self,
        store: StoragePort,
        dispatcher: NotificationDispatcher,
        incident_lookup: IncidentLookup | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.incident_lookup: IncidentLookup = incident_lookup or store.get_incident
        self._tasks: dict[int, asyncio.Task[None]] = {}

    async def start(
        self,
        incident: IncidentRecord,
        monitor: MonitorRecord,
        skip_elapsed: bool = False,
    ) -> bool:
        """
        Start escalation for an incident.

        Returns False when there is nothing to run: unsaved incident, already
        escalating, or no active policy with steps.
        """
        if incident.id is None:
            logger.warning("escalation_skipped_unsaved_incident", monitor_id=monitor.id)
            return False
        if incident.id in self._tasks:
            return False

        try:
            policy = await self.store.get_escalation_policy(incident.team_id)
        except StorageError as exc:
            logger.error(
                "escalation_policy_lookup_failed",
                incident_id=incident.id,
                error=str(exc),
            )
            return False

        if policy is None or not policy.active or not policy.steps:
            logger.debug("no_escalation_policy", incident_id=incident.id, team_id=incident.team_id)
            return False

        task = asyncio.create_task(
            self._run(incident, monitor, policy, skip_elapsed),
            name=f"escalation-{incident.id}",
        )
        self._tasks[incident.id] = task
        logger.info(
            "escalation_started",
            incident_id=incident.id,
            steps=len(policy.steps),
            resumed=skip_elapsed,
        )
        return True

    def stop(self, incident_id: int) -> bool:
        """Cancel the incident's escalation task. Returns True if one was running."""
        task = self._tasks.pop(incident_id, None)
        if task is None:
            return False
        task.cancel()
        logger.info("escalation_stopped", incident_id=incident_id)
        return True

    def is_escalating(self, incident_id: int) -> bool:
        return incident_id in self._tasks

    async def resume(
        self,
        incidents: Iterable[IncidentRecord],
    ) -> int:
        """Restart escalation for ONGOING incidents after a restart, skipping elapsed steps."""
        resumed = 0
        for incident in incidents:
            if incident.status != IncidentStatus.ONGOING:
                continue
            try:
                monitor = await self.store.get_monitor(incident.monitor_id)
            except StorageError as exc:
                logger.error("escalation_resume_failed", incident_id=incident.id, error=str(exc))
                continue
            if monitor is None:
                continue
            if await self.start(incident, monitor, skip_elapsed=True):
                resumed += 1
        logger.info("escalations_resumed", count=resumed)
        return resumed

    async def _run(
        self,
        incident: IncidentRecord,
        monitor: MonitorRecord,
        policy: EscalationPolicyRecord,
        skip_elapsed: bool,
    ) -> None:
        incident_id = incident.id
        try:
            for offset, index, attempt in policy.schedule():
                step = policy.steps[index]
                elapsed = (datetime.now(timezone.utc) - incident.started_at).total_seconds()
                wait = offset - elapsed
                if wait < 0 and skip_elapsed:
                    logger.debug(
                        "escalation_step_elapsed",
                        incident_id=incident_id,
                        step=index,
                        attempt=attempt,
                    )
                    continue
                if wait > 0:
                    await asyncio.sleep(wait)

                current = await self.incident_lookup(incident_id)
                if current is None or current.status != IncidentStatus.ONGOING:
                    logger.info(
                        "escalation_ended",
                        incident_id=incident_id,
                        status=current.status.value if current else None,
                    )
                    return

                logger.warning(
                    "escalation_step_fired",
                    incident_id=incident_id,
                    step=index,
                    attempt=attempt,
                    channel_ids=step.channel_ids,
                )
                payload = build_incident_payload(current, monitor, NotificationKind.ESCALATED)
                await self.dispatcher.notify_channel_ids(
                    incident.team_id, step.channel_ids, payload
                )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "escalation_task_failed",
                incident_id=incident_id,
                error=str(exc),
                exc_info=True,
            )
        finally:
            if self._tasks.get(incident_id) is asyncio.current_task():
                del self._tasks[incident_id]

    async def close(self) -> None:
        """Cancel every escalation task and wait for them to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)
