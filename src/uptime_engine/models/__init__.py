from __future__ import annotations

from uptime_engine.models.alert_channel import AlertChannel
from uptime_engine.models.base import Base
from uptime_engine.models.check_result import CheckResult
from uptime_engine.models.escalation import EscalationPolicy, EscalationStep
from uptime_engine.models.incident import Incident, IncidentUpdate
from uptime_engine.models.maintenance import MaintenanceWindow
from uptime_engine.models.monitor import Monitor

__all__ = [
    "Base",
    "Monitor",
    "CheckResult",
    "Incident",
    "IncidentUpdate",
    "EscalationPolicy",
    "EscalationStep",
    "AlertChannel",
    "MaintenanceWindow",
]
