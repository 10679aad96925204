from __future__ import annotations

from uptime_engine.alerting.base import ChannelAdapter, NotificationKind, NotificationPayload
from uptime_engine.alerting.dispatcher import (
    DeliveryOutcome,
    DeliveryRecord,
    NotificationDispatcher,
    build_incident_payload,
    build_ssl_payload,
)
from uptime_engine.alerting.email import EmailAdapter
from uptime_engine.alerting.factory import AdapterDefaults, build_adapter
from uptime_engine.alerting.slack import SlackAdapter
from uptime_engine.alerting.telegram import TelegramAdapter
from uptime_engine.alerting.webhook import WebhookAdapter
from uptime_engine.alerting.whatsapp import WhatsAppAdapter

__all__ = [
    "ChannelAdapter",
    "NotificationKind",
    "NotificationPayload",
    "NotificationDispatcher",
    "DeliveryOutcome",
    "DeliveryRecord",
    "build_incident_payload",
    "build_ssl_payload",
    "AdapterDefaults",
    "build_adapter",
    "EmailAdapter",
    "WebhookAdapter",
    "SlackAdapter",
    "TelegramAdapter",
    "WhatsAppAdapter",
]
