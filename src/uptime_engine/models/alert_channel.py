from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from uptime_engine.models.base import Base, UTCDateTime


class AlertChannel(Base):
    """A team's notification destination (email address, Slack webhook, ...)."""

    __tablename__ = "alert_channels"

    id: Mapped[int] = mapped_column(primary_key=True)
    team_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    channel_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )  # 'email', 'webhook', 'slack', 'whatsapp', 'telegram'
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    immediate: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<AlertChannel(id={self.id}, team_id={self.team_id}, "
            f"channel_type='{self.channel_type}')>"
        )
