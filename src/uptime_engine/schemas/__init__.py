from __future__ import annotations

from uptime_engine.schemas.channel import AlertChannelRecord, ChannelType
from uptime_engine.schemas.check import (
    CheckResultCreate,
    CheckResultResponse,
    ErrorClassification,
)
from uptime_engine.schemas.escalation import EscalationPolicyRecord, EscalationStepRecord
from uptime_engine.schemas.incident import (
    IncidentRecord,
    IncidentResponse,
    IncidentStatus,
    IncidentUpdateRecord,
)
from uptime_engine.schemas.maintenance import MaintenanceWindowRecord
from uptime_engine.schemas.monitor import MonitorRecord, MonitorStatus, MonitorType
from uptime_engine.schemas.ssl import SSLInfo
from uptime_engine.schemas.webhook import WebhookStatusUpdate

__all__ = [
    "AlertChannelRecord",
    "ChannelType",
    "CheckResultCreate",
    "CheckResultResponse",
    "ErrorClassification",
    "EscalationPolicyRecord",
    "EscalationStepRecord",
    "IncidentRecord",
    "IncidentResponse",
    "IncidentStatus",
    "IncidentUpdateRecord",
    "MaintenanceWindowRecord",
    "MonitorRecord",
    "MonitorStatus",
    "MonitorType",
    "SSLInfo",
    "WebhookStatusUpdate",
]
