from __future__ import annotations

from abc import ABC, abstractmethod

from uptime_engine.schemas.channel import ChannelType


class CapabilityOracle(ABC):
    """Answers plan-limit questions for a team."""

    @abstractmethod
    async def is_channel_allowed(self, team_id: int, channel_type: ChannelType) -> bool:
        pass

    @abstractmethod
    async def is_interval_allowed(self, team_id: int, interval_seconds: int) -> bool:
        pass


class AllowAllCapabilities(CapabilityOracle):
    """No plan limits."""

    async def is_channel_allowed(self, team_id: int, channel_type: ChannelType) -> bool:
        return True

    async def is_interval_allowed(self, team_id: int, interval_seconds: int) -> bool:
        return True


class SettingsCapabilities(CapabilityOracle):
    """Same limits for every team, taken from settings."""

    def __init__(self, min_check_interval: int, allowed_channel_types: list[str]):
        self.min_check_interval = min_check_interval
        self.allowed_channel_types = {t.lower() for t in allowed_channel_types}

    async def is_channel_allowed(self, team_id: int, channel_type: ChannelType) -> bool:
        return channel_type.value in self.allowed_channel_types

    async def is_interval_allowed(self, team_id: int, interval_seconds: int) -> bool:
        return interval_seconds >= self.min_check_interval
