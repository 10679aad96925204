from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChannelType(str, Enum):
    """Supported notification channel types."""

    EMAIL = "email"
    WEBHOOK = "webhook"
    SLACK = "slack"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"


class AlertChannelRecord(BaseModel):
    """
    A configured notification destination.

    ``config`` is type specific:

    * email: ``{"to": "ops@example.com"}``
    * webhook: ``{"url": ..., "method": "POST", "headers": {...}}``
    * slack: ``{"webhook_url": ..., "channel": "#alerts"}``
    * whatsapp: ``{"phone": ..., "instance_name": ..., "evolution_api_url": ...}``
    * telegram: ``{"chat_id": ..., "bot_token": ...}``
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    name: str = Field(default="", max_length=100)
    channel_type: ChannelType
    config: dict[str, Any] = Field(default_factory=dict)
    active: bool = True
    immediate: bool = True
