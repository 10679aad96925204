from __future__ import annotations

from uptime_engine.utils.exceptions import (
    AlertDeliveryError,
    ChannelConfigError,
    DuplicateRegistrationError,
    IncidentNotFoundError,
    InvalidIncidentTransitionError,
    MonitoringException,
    MonitorNotFoundError,
    SchedulingError,
    StorageError,
    TransientDeliveryError,
    WebhookRejectedError,
    WebhookSignatureError,
)
from uptime_engine.utils.locks import KeyedLock
from uptime_engine.utils.logging import get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "KeyedLock",
    "MonitoringException",
    "MonitorNotFoundError",
    "IncidentNotFoundError",
    "InvalidIncidentTransitionError",
    "SchedulingError",
    "DuplicateRegistrationError",
    "StorageError",
    "AlertDeliveryError",
    "TransientDeliveryError",
    "ChannelConfigError",
    "WebhookSignatureError",
    "WebhookRejectedError",
]
