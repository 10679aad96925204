from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uptime_engine.models.base import Base


class EscalationPolicy(Base):
    """Team-level escalation policy."""

    __tablename__ = "escalation_policies"

    id: Mapped[int] = mapped_column(primary_key=True)
    team_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="default")
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    steps: Mapped[list[EscalationStep]] = relationship(
        back_populates="policy",
        cascade="all, delete-orphan",
        order_by="EscalationStep.delay_seconds",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<EscalationPolicy(id={self.id}, team_id={self.team_id})>"


class EscalationStep(Base):
    """One step of a policy: a delay from incident start and the channels to notify."""

    __tablename__ = "escalation_steps"

    id: Mapped[int] = mapped_column(primary_key=True)
    policy_id: Mapped[int] = mapped_column(
        ForeignKey("escalation_policies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    delay_seconds: Mapped[float] = mapped_column(Float, nullable=False)
    channel_ids: Mapped[list[Any]] = mapped_column(JSON, nullable=False)
    repeat_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repeat_interval_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)

    policy: Mapped[EscalationPolicy] = relationship(back_populates="steps")

    def __repr__(self) -> str:
        return (
            f"<EscalationStep(id={self.id}, policy_id={self.policy_id}, "
            f"delay_seconds={self.delay_seconds})>"
        )
