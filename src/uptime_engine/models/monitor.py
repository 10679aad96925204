from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uptime_engine.models.base import Base, UTCDateTime

if TYPE_CHECKING:
    from uptime_engine.models.check_result import CheckResult
    from uptime_engine.models.incident import Incident


class Monitor(Base):
    """Monitor model for tracking endpoints to monitor."""

    __tablename__ = "monitors"

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True)

    # Ownership (teams live in the CRUD service)
    team_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Monitor details
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    monitor_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="http",
    )  # 'http', 'webhook'

    # Request configuration
    method: Mapped[str] = mapped_column(String(10), nullable=False, default="GET")
    expected_status: Mapped[int] = mapped_column(Integer, nullable=False, default=200)
    request_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_headers: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    follow_redirects: Mapped[bool] = mapped_column(Boolean, default=True)
    check_ssl: Mapped[bool] = mapped_column(Boolean, default=False)

    # Check configuration
    interval_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    timeout_seconds: Mapped[float] = mapped_column(Float, default=30.0)
    confirmation_threshold: Mapped[int] = mapped_column(Integer, default=0)
    recovery_window_seconds: Mapped[int] = mapped_column(Integer, default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    alerts_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # Check state
    current_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="unknown",
    )  # 'unknown', 'up', 'down', 'degraded'
    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0)
    recovery_started_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
    )
    last_checked_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
    )

    # Webhook monitors
    webhook_token: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        unique=True,
        index=True,
    )
    webhook_secret: Mapped[str | None] = mapped_column(String(255), nullable=True)
    heartbeat_interval_seconds: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    last_heartbeat_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    check_results: Mapped[list[CheckResult]] = relationship(
        back_populates="monitor",
        cascade="all, delete-orphan",
    )
    incidents: Mapped[list[Incident]] = relationship(
        back_populates="monitor",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Monitor(id={self.id}, name='{self.name}', url='{self.url}')>"
