from __future__ import annotations

import asyncio
import json
import socket
import ssl
from datetime import datetime, timezone

import httpx
import structlog

from uptime_engine.schemas.check import CheckResultCreate, ErrorClassification
from uptime_engine.schemas.monitor import MonitorRecord

logger = structlog.get_logger(__name__)

# Only these methods carry the configured request body
_BODY_METHODS = {"POST", "PUT", "PATCH"}

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "temporary failure in name resolution",
    "no address associated",
)


def detect_content_type(body: str) -> str:
    """Guess a Content-Type for a request body: JSON if it parses, form otherwise."""
    try:
        json.loads(body)
    except ValueError:
        return "application/x-www-form-urlencoded"
    return "application/json"


def classify_error(exc: BaseException) -> ErrorClassification:
    """Map a transport exception to an error classification."""
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ErrorClassification.TIMEOUT

    # httpx wraps the socket-level error; walk the cause chain
    seen: BaseException | None = exc
    while seen is not None:
        if isinstance(seen, ssl.SSLError):
            return ErrorClassification.TLS_ERROR
        if isinstance(seen, socket.gaierror):
            return ErrorClassification.DNS_FAILURE
        if isinstance(seen, ConnectionRefusedError):
            return ErrorClassification.CONNECTION_REFUSED
        seen = seen.__cause__ or seen.__context__

    message = str(exc).lower()
    if "certificate" in message or "ssl" in message or "tls" in message:
        return ErrorClassification.TLS_ERROR
    if any(marker in message for marker in _DNS_MARKERS):
        return ErrorClassification.DNS_FAILURE
    if "refused" in message:
        return ErrorClassification.CONNECTION_REFUSED
    return ErrorClassification.OTHER


class ProberService:
    """Performs one HTTP check against one monitor configuration."""

    def __init__(self, user_agent: str = "UptimeEngine/1.0"):
        self.user_agent = user_agent

    def _build_headers(self, monitor: MonitorRecord) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent, "Accept": "*/*"}
        headers.update(monitor.request_headers)
        if monitor.request_body and not any(
            key.lower() == "content-type" for key in headers
        ):
            headers["Content-Type"] = detect_content_type(monitor.request_body)
        return headers

    async def probe(self, monitor: MonitorRecord) -> CheckResultCreate:
        """
        Check a monitor's endpoint once.

        The whole exchange is bounded by the monitor's timeout. A response
        with exactly the expected status code is a success regardless of
        latency. Failures are returned as results, never raised.

        Args:
            monitor: Monitor to check

        Returns:
            CheckResultCreate with the check outcome
        """
        logger.debug(
            "http_check_start",
            monitor_id=monitor.id,
            url=monitor.url,
            method=monitor.method,
        )

        loop = asyncio.get_running_loop()
        start_time = loop.time()
        content = (
            monitor.request_body
            if monitor.request_body and monitor.method in _BODY_METHODS
            else None
        )

        try:
            async with httpx.AsyncClient(
                timeout=monitor.timeout_seconds,
                follow_redirects=monitor.follow_redirects,
                headers=self._build_headers(monitor),
            ) as client:
                response = await asyncio.wait_for(
                    client.request(monitor.method, monitor.url, content=content),
                    timeout=monitor.timeout_seconds,
                )

            latency_ms = (loop.time() - start_time) * 1000
            success = response.status_code == monitor.expected_status

            logger.info(
                "http_check_complete",
                monitor_id=monitor.id,
                status_code=response.status_code,
                latency_ms=round(latency_ms, 2),
                success=success,
            )

            return CheckResultCreate(
                monitor_id=monitor.id,
                status_code=response.status_code,
                latency_ms=latency_ms,
                success=success,
                error_classification=(
                    None if success else ErrorClassification.UNEXPECTED_STATUS
                ),
                error_message=(
                    None
                    if success
                    else f"Status code {response.status_code} "
                    f"(expected {monitor.expected_status})"
                ),
                checked_at=datetime.now(timezone.utc),
            )

        except (httpx.TimeoutException, asyncio.TimeoutError):
            logger.warning(
                "http_check_timeout",
                monitor_id=monitor.id,
                timeout=monitor.timeout_seconds,
            )
            return CheckResultCreate(
                monitor_id=monitor.id,
                success=False,
                error_classification=ErrorClassification.TIMEOUT,
                error_message=f"Timeout after {monitor.timeout_seconds}s",
                checked_at=datetime.now(timezone.utc),
            )

        except httpx.HTTPError as exc:
            classification = classify_error(exc)
            logger.warning(
                "http_check_error",
                monitor_id=monitor.id,
                classification=classification.value,
                error=str(exc),
            )
            return CheckResultCreate(
                monitor_id=monitor.id,
                success=False,
                error_classification=classification,
                error_message=(str(exc) or classification.value)[:1000],
                checked_at=datetime.now(timezone.utc),
            )

        except Exception as exc:
            # Catch-all for unexpected errors (invalid URL, bad header values, ...)
            logger.error(
                "http_check_unexpected_error",
                monitor_id=monitor.id,
                error=str(exc),
                exc_info=True,
            )
            return CheckResultCreate(
                monitor_id=monitor.id,
                success=False,
                error_classification=ErrorClassification.OTHER,
                error_message=f"Unexpected error: {exc}"[:1000],
                checked_at=datetime.now(timezone.utc),
            )
