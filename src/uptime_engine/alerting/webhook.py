from __future__ import annotations

from typing import Any

import structlog

from uptime_engine.alerting.base import ChannelAdapter, NotificationPayload, require
from uptime_engine.utils.exceptions import ChannelConfigError

logger = structlog.get_logger(__name__)

_ALLOWED_METHODS = {"GET", "POST", "PUT", "PATCH"}


class WebhookAdapter(ChannelAdapter):
    """Send notifications via HTTP webhook."""

    channel_name = "webhook"

    def __init__(
        self,
        url: str,
        method: str = "POST",
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ):
        super().__init__(timeout)
        self.url = url
        self.method = method.upper()
        self.headers = headers or {}

    @classmethod
    def from_config(cls, config: dict[str, Any], timeout: float = 10.0) -> WebhookAdapter:
        method = str(config.get("method") or "POST").upper()
        if method not in _ALLOWED_METHODS:
            raise ChannelConfigError(
                channel=cls.channel_name,
                reason=f"unsupported method '{method}'",
            )
        headers = config.get("headers") or {}
        if not isinstance(headers, dict):
            raise ChannelConfigError(channel=cls.channel_name, reason="headers must be a mapping")
        return cls(
            url=require(config, "url", cls.channel_name),
            method=method,
            headers={str(k): str(v) for k, v in headers.items()},
            timeout=timeout,
        )

    async def send(self, payload: NotificationPayload) -> None:
        body = {"type": "alert", **payload.to_dict()}
        kwargs: dict[str, Any] = {"headers": {"Content-Type": "application/json", **self.headers}}
        if self.method == "GET":
            kwargs["params"] = {"kind": payload.kind.value, "monitor_id": payload.monitor_id}
        else:
            kwargs["json"] = body

        response = await self._post(self.url, payload, method=self.method, **kwargs)

        logger.info(
            "webhook_notification_sent",
            url=self.url,
            status_code=response.status_code,
            kind=payload.kind.value,
        )
