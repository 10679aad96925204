"""Telegram notification channel."""

from __future__ import annotations

import re
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

_MARKDOWN_SPECIAL = re.compile(r"([_*\[\]()~`>#+=|{}.!-])")


def escape_markdown(text: str) -> str:
    return _MARKDOWN_SPECIAL.sub(r"\\\1", text)


class TelegramAdapter(ChannelAdapter):
    """Send notifications to a Telegram chat using the Bot API."""

    channel_name = "telegram"

    def __init__(self, bot_token: str, chat_id: str, timeout: float = 10.0):
        super().__init__(timeout)
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_url = f"https://api.telegram.org/bot{self.bot_token}"

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        default_bot_token: str | None = None,
        timeout: float = 10.0,
    ) -> TelegramAdapter:
        chat_id = require(config, "chat_id", cls.channel_name)
        bot_token = config.get("bot_token") or default_bot_token
        if not bot_token:
            raise ChannelConfigError(
                channel=cls.channel_name,
                reason="no bot_token in channel config and no default token configured",
            )
        return cls(bot_token=bot_token, chat_id=str(chat_id), timeout=timeout)

    def format_message(self, payload: NotificationPayload) -> str:
        lines = [
            f"\U0001f6a8 *{status_label(payload)}*: {escape_markdown(payload.title)}",
            "",
            f"*Monitor:* {escape_markdown(payload.monitor_name)}",
            f"*URL:* {escape_markdown(payload.monitor_url)}",
        ]
        if payload.message:
            lines.append(f"*Message:* {escape_markdown(payload.message)}")
        lines.append(f"*Time:* {escape_markdown(payload.timestamp)}")
        return "\n".join(lines)

    async def send(self, payload: NotificationPayload) -> None:
        await self._post(
            f"{self.api_url}/sendMessage",
            payload,
            json={
                "chat_id": self.chat_id,
                "text": self.format_message(payload),
                "parse_mode": "MarkdownV2",
            },
        )

        logger.info(
            "telegram_notification_sent",
            chat_id=self.chat_id,
            kind=payload.kind.value,
        )
