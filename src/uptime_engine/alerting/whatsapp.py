"""WhatsApp notification channel through an Evolution API instance."""

from __future__ import annotations

from typing import Any

import structlog

from uptime_engine.alerting.base import (
    ChannelAdapter,
    NotificationPayload,
    require,
    status_label,
)
from uptime_engine.utils.exceptions import ChannelConfigError

logger = structlog.get_logger(__name__)


class WhatsAppAdapter(ChannelAdapter):
    """Send notifications as WhatsApp text messages via Evolution API."""

    channel_name = "whatsapp"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        instance_name: str,
        phone: str,
        timeout: float = 10.0,
    ):
        super().__init__(timeout)
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.instance_name = instance_name
        self.phone = phone

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        default_api_url: str | None = None,
        default_api_key: str | None = None,
        timeout: float = 10.0,
    ) -> WhatsAppAdapter:
        phone = require(config, "phone", cls.channel_name)
        instance_name = require(config, "instance_name", cls.channel_name)
        api_url = config.get("evolution_api_url") or default_api_url
        api_key = config.get("evolution_api_key") or default_api_key
        if not api_url or not api_key:
            raise ChannelConfigError(
                channel=cls.channel_name,
                reason="Evolution API URL and key are not configured",
            )
        return cls(
            api_url=api_url,
            api_key=api_key,
            instance_name=str(instance_name),
            phone=str(phone),
            timeout=timeout,
        )

    def format_message(self, payload: NotificationPayload) -> str:
        lines = [
            f"*{status_label(payload)}*: {payload.title}",
            "",
            f"*Monitor:* {payload.monitor_name}",
            f"*URL:* {payload.monitor_url}",
        ]
        if payload.message:
            lines.append(f"*Message:* {payload.message}")
        lines.append(f"*Time:* {payload.timestamp}")
        return "\n".join(lines)

    async def send(self, payload: NotificationPayload) -> None:
        await self._post(
            f"{self.api_url}/message/sendText/{self.instance_name}",
            payload,
            headers={"apikey": self.api_key},
            json={"number": self.phone, "text": self.format_message(payload)},
        )

        logger.info(
            "whatsapp_notification_sent",
            phone=self.phone,
            instance=self.instance_name,
            kind=payload.kind.value,
        )
