from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

import httpx

from uptime_engine.utils.exceptions import ChannelConfigError, TransientDeliveryError


class NotificationKind(str, Enum):
    """Why a notification is being sent."""

    OPENED = "opened"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    SSL_EXPIRY = "ssl_expiry"


@dataclass
class NotificationPayload:
    """Standardized notification payload for delivery."""

    kind: NotificationKind
    team_id: int
    monitor_id: int
    monitor_name: str
    monitor_url: str
    status: str
    title: str
    message: str
    timestamp: str
    incident_id: int = 0
    incident_status: str | None = None
    cause: str | None = None
    started_at: str | None = None
    resolved_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


def require(config: dict[str, Any], key: str, channel: str) -> Any:
    """Return ``config[key]`` or raise ChannelConfigError when it is missing or blank."""
    value = config.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ChannelConfigError(channel=channel, reason=f"missing '{key}' in channel config")
    return value


def check_response(response: httpx.Response, channel: str, incident_id: int = 0) -> None:
    """
    Classify a provider response.

    5xx and 429 are transient. Any other non-2xx means the request itself
    is wrong (bad URL, revoked token, unknown chat) and will not succeed on
    retry.
    """
    status = response.status_code
    if 200 <= status < 300:
        return
    reason = f"http_status={status}"
    if status >= 500 or status == 429:
        raise TransientDeliveryError(channel=channel, reason=reason, incident_id=incident_id)
    raise ChannelConfigError(channel=channel, reason=reason, incident_id=incident_id)


class ChannelAdapter(ABC):
    """Abstract base class for notification delivery channels.

    ``send`` returns on success and raises ``TransientDeliveryError`` for
    failures worth retrying or ``ChannelConfigError`` for failures that are
    not.
    """

    channel_name: str = "channel"

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> None:
        pass

    async def _post(
        self,
        url: str,
        payload: NotificationPayload,
        method: str = "POST",
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise TransientDeliveryError(
                channel=self.channel_name,
                reason=str(exc) or type(exc).__name__,
                incident_id=payload.incident_id,
            ) from exc
        check_response(response, self.channel_name, payload.incident_id)
        return response


def status_label(payload: NotificationPayload) -> str:
    labels = {
        NotificationKind.OPENED: "DOWN",
        NotificationKind.ESCALATED: "ESCALATED",
        NotificationKind.RESOLVED: "RESOLVED",
        NotificationKind.SSL_EXPIRY: "SSL",
    }
    if payload.kind == NotificationKind.OPENED and payload.status == "degraded":
        return "DEGRADED"
    return labels[payload.kind]
