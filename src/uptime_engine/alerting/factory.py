from __future__ import annotations

from dataclasses import dataclass

from uptime_engine.alerting.base import ChannelAdapter
from uptime_engine.alerting.email import EmailAdapter
from uptime_engine.alerting.slack import SlackAdapter
from uptime_engine.alerting.telegram import TelegramAdapter
from uptime_engine.alerting.webhook import WebhookAdapter
from uptime_engine.alerting.whatsapp import WhatsAppAdapter
from uptime_engine.config import Settings
from uptime_engine.schemas.channel import AlertChannelRecord, ChannelType


@dataclass(frozen=True)
class AdapterDefaults:
    """Process-wide provider credentials used when a channel does not carry its own."""

    timeout: float = 10.0
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    from_email: str = "alerts@example.com"
    telegram_bot_token: str | None = None
    evolution_api_url: str | None = None
    evolution_api_key: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> AdapterDefaults:
        return cls(
            timeout=settings.notification_timeout_seconds,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            smtp_use_tls=settings.smtp_use_tls,
            from_email=settings.from_email,
            telegram_bot_token=settings.telegram_bot_token,
            evolution_api_url=settings.evolution_api_url,
            evolution_api_key=settings.evolution_api_key,
        )


def build_adapter(channel: AlertChannelRecord, defaults: AdapterDefaults) -> ChannelAdapter:
    """Resolve the adapter for a channel. Raises ChannelConfigError on bad config."""
    config = channel.config
    if channel.channel_type == ChannelType.EMAIL:
        return EmailAdapter.from_config(
            config,
            smtp_host=defaults.smtp_host,
            smtp_port=defaults.smtp_port,
            from_email=defaults.from_email,
            smtp_user=defaults.smtp_user,
            smtp_password=defaults.smtp_password,
            use_tls=defaults.smtp_use_tls,
            timeout=defaults.timeout,
        )
    if channel.channel_type == ChannelType.WEBHOOK:
        return WebhookAdapter.from_config(config, timeout=defaults.timeout)
    if channel.channel_type == ChannelType.SLACK:
        return SlackAdapter.from_config(config, timeout=defaults.timeout)
    if channel.channel_type == ChannelType.TELEGRAM:
        return TelegramAdapter.from_config(
            config,
            default_bot_token=defaults.telegram_bot_token,
            timeout=defaults.timeout,
        )
    return WhatsAppAdapter.from_config(
        config,
        default_api_url=defaults.evolution_api_url,
        default_api_key=defaults.evolution_api_key,
        timeout=defaults.timeout,
    )
