from __future__ import annotations

from uptime_engine.services.capabilities import (
    AllowAllCapabilities,
    CapabilityOracle,
    SettingsCapabilities,
)
from uptime_engine.services.prober import ProberService
from uptime_engine.services.ssl_inspector import SSLInspector
from uptime_engine.services.status_evaluator import (
    DownTransition,
    Evaluation,
    StatusEvaluator,
    UpTransition,
)

# Services that depend on alerting are imported from their modules directly:
# check_processor, escalation_engine, heartbeat_service, incident_service.

__all__ = [
    "CapabilityOracle",
    "AllowAllCapabilities",
    "SettingsCapabilities",
    "ProberService",
    "SSLInspector",
    "StatusEvaluator",
    "Evaluation",
    "DownTransition",
    "UpTransition",
]
