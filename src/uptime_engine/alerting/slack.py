from __future__ import annotations

from typing import Any

import structlog

from uptime_engine.alerting.base import (
    ChannelAdapter,
    NotificationKind,
    NotificationPayload,
    require,
    status_label,
)

logger = structlog.get_logger(__name__)

_EMOJI = {
    NotificationKind.OPENED: ":red_circle:",
    NotificationKind.ESCALATED: ":rotating_light:",
    NotificationKind.RESOLVED: ":white_check_mark:",
    NotificationKind.SSL_EXPIRY: ":lock:",
}

_COLOR = {
    NotificationKind.OPENED: "#ef4444",
    NotificationKind.ESCALATED: "#8b0000",
    NotificationKind.RESOLVED: "#10b981",
    NotificationKind.SSL_EXPIRY: "#f59e0b",
}


class SlackAdapter(ChannelAdapter):
    """Send notifications via Slack incoming webhook."""

    channel_name = "slack"

    def __init__(self, webhook_url: str, channel: str | None = None, timeout: float = 10.0):
        super().__init__(timeout)
        self.webhook_url = webhook_url
        self.channel = channel

    @classmethod
    def from_config(cls, config: dict[str, Any], timeout: float = 10.0) -> SlackAdapter:
        return cls(
            webhook_url=require(config, "webhook_url", cls.channel_name),
            channel=config.get("channel"),
            timeout=timeout,
        )

    def build_message(self, payload: NotificationPayload) -> dict[str, Any]:
        fields = [
            {"title": "Monitor", "value": payload.monitor_name, "short": True},
            {"title": "Status", "value": status_label(payload), "short": True},
            {"title": "URL", "value": payload.monitor_url, "short": False},
        ]
        if payload.message:
            fields.append({"title": "Message", "value": payload.message, "short": False})

        message: dict[str, Any] = {
            "text": f"{_EMOJI[payload.kind]} *{payload.title}*",
            "attachments": [
                {
                    "color": _COLOR[payload.kind],
                    "title_link": payload.monitor_url,
                    "fields": fields,
                    "footer": "Uptime Engine",
                    "ts": payload.timestamp,
                }
            ],
        }
        if self.channel:
            message["channel"] = self.channel
        return message

    async def send(self, payload: NotificationPayload) -> None:
        response = await self._post(
            self.webhook_url,
            payload,
            json=self.build_message(payload),
        )

        logger.info(
            "slack_notification_sent",
            channel=self.channel,
            status_code=response.status_code,
            kind=payload.kind.value,
        )
