from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uptime_engine.models.base import Base, UTCDateTime

if TYPE_CHECKING:
    from uptime_engine.models.monitor import Monitor


class CheckResult(Base):
    """
    One probe outcome or one webhook push/heartbeat.

    Append-only history. Stale results that the status evaluator rejected
    are never written.
    """

    __tablename__ = "check_results"
    __table_args__ = (
        # Uptime history reads are always "latest N for a monitor"
        Index("ix_check_results_monitor_checked", "monitor_id", "checked_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    monitor_id: Mapped[int] = mapped_column(
        ForeignKey("monitors.id", ondelete="CASCADE"),
        nullable=False,
    )

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    latency_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    # ErrorClassification value; NULL on success
    error_classification: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    # up/down/degraded as pushed by a webhook monitor
    reported_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    checked_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        server_default=func.now(),
        nullable=False,
    )

    monitor: Mapped[Monitor] = relationship(back_populates="check_results")

    def __repr__(self) -> str:
        outcome = "ok" if self.success else self.error_classification
        return f"<CheckResult(monitor_id={self.monitor_id}, {outcome}, at={self.checked_at})>"
