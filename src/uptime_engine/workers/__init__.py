from __future__ import annotations

from uptime_engine.workers.check_worker import CheckWorkerPool
from uptime_engine.workers.heartbeat_worker import HeartbeatWorker
from uptime_engine.workers.runtime import MonitoringRuntime
from uptime_engine.workers.scheduler import CheckJob, MonitorScheduler
from uptime_engine.workers.ssl_worker import SSLSweepWorker

__all__ = [
    "CheckJob",
    "MonitorScheduler",
    "CheckWorkerPool",
    "HeartbeatWorker",
    "SSLSweepWorker",
    "MonitoringRuntime",
]
