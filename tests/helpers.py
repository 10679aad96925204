"""Record builders and test doubles shared across the test suite."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from uptime_engine.alerting.base import ChannelAdapter, NotificationPayload
from uptime_engine.schemas.channel import AlertChannelRecord, ChannelType
from uptime_engine.schemas.check import CheckResultCreate, ErrorClassification
from uptime_engine.schemas.monitor import MonitorRecord

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    """Timestamp ``seconds`` after T0."""
    return T0 + timedelta(seconds=seconds)


def make_monitor(monitor_id: int = 1, **overrides) -> MonitorRecord:
    fields = {
        "id": monitor_id,
        "team_id": 1,
        "name": f"Monitor {monitor_id}",
        "url": "https://api.example.com/health",
        "interval_seconds": 60,
        "timeout_seconds": 5.0,
    }
    fields.update(overrides)
    return MonitorRecord(**fields)


def make_channel(channel_id: int = 1, **overrides) -> AlertChannelRecord:
    fields = {
        "id": channel_id,
        "team_id": 1,
        "name": f"Channel {channel_id}",
        "channel_type": ChannelType.WEBHOOK,
        "config": {"url": f"https://hooks.example.com/{channel_id}"},
    }
    fields.update(overrides)
    return AlertChannelRecord(**fields)


def ok(monitor_id: int, seconds: float) -> CheckResultCreate:
    return CheckResultCreate(
        monitor_id=monitor_id,
        status_code=200,
        latency_ms=12.0,
        success=True,
        checked_at=at(seconds),
    )


def fail(
    monitor_id: int,
    seconds: float,
    message: str = "Status code 503 (expected 200)",
) -> CheckResultCreate:
    return CheckResultCreate(
        monitor_id=monitor_id,
        status_code=503,
        latency_ms=12.0,
        success=False,
        error_classification=ErrorClassification.UNEXPECTED_STATUS,
        error_message=message,
        checked_at=at(seconds),
    )


class RecordingAdapter(ChannelAdapter):
    """Channel adapter that records what it was asked to send."""

    channel_name = "recording"

    def __init__(self, channel: AlertChannelRecord, sent: list):
        super().__init__()
        self.channel = channel
        self.sent = sent

    async def send(self, payload: NotificationPayload) -> None:
        self.sent.append((self.channel.id, payload))
