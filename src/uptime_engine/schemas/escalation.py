from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EscalationStepRecord(BaseModel):
    """
    Notify ``channel_ids`` if the incident is still unacknowledged after ``delay_seconds``.

    ``repeat_count`` extra notifications follow, ``repeat_interval_seconds``
    apart, for as long as the incident stays ONGOING.
    """

    model_config = ConfigDict(from_attributes=True)

    delay_seconds: float = Field(..., ge=0)
    channel_ids: list[int] = Field(..., min_length=1)
    repeat_count: int = Field(0, ge=0)
    repeat_interval_seconds: float | None = Field(None, gt=0)

    @model_validator(mode="after")
    def check_repeat_interval(self) -> EscalationStepRecord:
        if self.repeat_count and self.repeat_interval_seconds is None:
            raise ValueError("repeat_interval_seconds is required when repeat_count > 0")
        return self

    def firing_offsets(self) -> list[float]:
        """Seconds after incident start at which this step notifies."""
        offsets = [self.delay_seconds]
        for attempt in range(1, self.repeat_count + 1):
            offsets.append(self.delay_seconds + attempt * self.repeat_interval_seconds)
        return offsets


class EscalationPolicyRecord(BaseModel):
    """Ordered escalation steps owned by a team."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    team_id: int
    name: str = "default"
    active: bool = True
    steps: list[EscalationStepRecord] = Field(default_factory=list)

    @field_validator("steps")
    @classmethod
    def order_steps(cls, v: list[EscalationStepRecord]) -> list[EscalationStepRecord]:
        # Delays are relative to incident start, so firing order is delay order
        return sorted(v, key=lambda step: step.delay_seconds)

    def schedule(self) -> list[tuple[float, int, int]]:
        """Every notification the policy can send as ``(offset, step_index, attempt)``, in time order."""
        firings = [
            (offset, index, attempt)
            for index, step in enumerate(self.steps)
            for attempt, offset in enumerate(step.firing_offsets())
        ]
        return sorted(firings)
