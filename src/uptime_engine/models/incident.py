from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uptime_engine.models.base import Base, UTCDateTime

if TYPE_CHECKING:
    from uptime_engine.models.monitor import Monitor


class Incident(Base):
    """An outage of one monitor, from DOWN transition to resolution."""

    __tablename__ = "incidents"

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True)

    # Foreign key to monitor
    monitor_id: Mapped[int] = mapped_column(
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    team_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Incident details
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    cause: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
    )  # 'ongoing', 'acknowledged', 'resolved'

    # Lifecycle
    started_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        index=True,
    )
    acknowledged_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
    )
    acknowledged_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    monitor: Mapped[Monitor] = relationship(back_populates="incidents")
    updates: Mapped[list[IncidentUpdate]] = relationship(
        back_populates="incident",
        cascade="all, delete-orphan",
        order_by="IncidentUpdate.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Incident(id={self.id}, monitor_id={self.monitor_id}, "
            f"status='{self.status}')>"
        )


class IncidentUpdate(Base):
    """A timestamped entry in an incident's history."""

    __tablename__ = "incident_updates"

    id: Mapped[int] = mapped_column(primary_key=True)
    incident_id: Mapped[int] = mapped_column(
        ForeignKey("incidents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
    )

    incident: Mapped[Incident] = relationship(back_populates="updates")

    def __repr__(self) -> str:
        return f"<IncidentUpdate(id={self.id}, incident_id={self.incident_id})>"
