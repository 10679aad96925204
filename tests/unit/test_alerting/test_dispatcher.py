"""Unit tests for NotificationDispatcher."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from helpers import make_channel, make_monitor
from uptime_engine.alerting.base import ChannelAdapter, NotificationKind, NotificationPayload
from uptime_engine.alerting.dispatcher import (
    DeliveryOutcome,
    NotificationDispatcher,
    build_incident_payload,
    build_ssl_payload,
)
from uptime_engine.schemas.incident import IncidentRecord, IncidentStatus
from uptime_engine.schemas.ssl import SSLInfo
from uptime_engine.services.capabilities import SettingsCapabilities
from uptime_engine.storage.memory import InMemoryStore
from uptime_engine.utils.exceptions import ChannelConfigError, TransientDeliveryError


class FlakyAdapter(ChannelAdapter):
    """Raises the queued errors in order, then succeeds."""

    channel_name = "flaky"

    def __init__(self, errors: list[Exception]):
        super().__init__()
        self.errors = errors
        self.calls = 0

    async def send(self, payload: NotificationPayload) -> None:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)


def _payload(incident_id: int = 5) -> NotificationPayload:
    return NotificationPayload(
        kind=NotificationKind.OPENED,
        team_id=1,
        monitor_id=1,
        monitor_name="API",
        monitor_url="https://api.example.com",
        status="down",
        title="API is down",
        message="HTTP 503",
        timestamp="2024-01-01T12:00:00+00:00",
        incident_id=incident_id,
    )


def _dispatcher(adapter: ChannelAdapter, **kwargs) -> NotificationDispatcher:
    return NotificationDispatcher(
        InMemoryStore(),
        backoff_base_seconds=0,
        adapter_factory=lambda channel, defaults: adapter,
        **kwargs,
    )


@pytest.mark.unit
async def test_transient_errors_are_retried() -> None:
    adapter = FlakyAdapter([
        TransientDeliveryError(channel="flaky", reason="http_status=503"),
        TransientDeliveryError(channel="flaky", reason="http_status=429"),
    ])
    dispatcher = _dispatcher(adapter, max_attempts=3)

    record = await dispatcher.deliver(make_channel(1), _payload())

    assert record.outcome == DeliveryOutcome.DELIVERED
    assert record.attempts == 3
    assert record.error is None
    assert adapter.calls == 3


@pytest.mark.unit
async def test_gives_up_after_max_attempts() -> None:
    adapter = FlakyAdapter([
        TransientDeliveryError(channel="flaky", reason="timeout") for _ in range(5)
    ])
    dispatcher = _dispatcher(adapter, max_attempts=2)

    record = await dispatcher.deliver(make_channel(1), _payload())

    assert record.outcome == DeliveryOutcome.FAILED
    assert record.attempts == 2
    assert record.error == "timeout"


@pytest.mark.unit
async def test_config_error_is_not_retried() -> None:
    adapter = FlakyAdapter([ChannelConfigError(channel="flaky", reason="http_status=404")])
    dispatcher = _dispatcher(adapter, max_attempts=3)

    record = await dispatcher.deliver(make_channel(1), _payload())

    assert record.outcome == DeliveryOutcome.FAILED
    assert record.attempts == 1
    assert record.error == "http_status=404"


@pytest.mark.unit
async def test_unexpected_adapter_error_is_recorded() -> None:
    adapter = FlakyAdapter([RuntimeError("boom")])
    record = await _dispatcher(adapter).deliver(make_channel(1), _payload())

    assert record.outcome == DeliveryOutcome.FAILED
    assert record.error == "Unexpected error: boom"


@pytest.mark.unit
async def test_misconfigured_channel_fails_without_sending() -> None:
    # Default factory: webhook channel without a url
    dispatcher = NotificationDispatcher(InMemoryStore())
    channel = make_channel(1, config={})

    record = await dispatcher.deliver(channel, _payload())

    assert record.outcome == DeliveryOutcome.FAILED
    assert record.attempts == 1
    assert "url" in record.error


@pytest.mark.unit
async def test_inactive_channel_is_skipped() -> None:
    adapter = FlakyAdapter([])
    record = await _dispatcher(adapter).deliver(make_channel(1, active=False), _payload())

    assert record.outcome == DeliveryOutcome.SKIPPED
    assert adapter.calls == 0


@pytest.mark.unit
async def test_channel_type_not_allowed_is_skipped() -> None:
    adapter = FlakyAdapter([])
    dispatcher = _dispatcher(
        adapter,
        capabilities=SettingsCapabilities(min_check_interval=30, allowed_channel_types=["email"]),
    )

    record = await dispatcher.deliver(make_channel(1), _payload())

    assert record.outcome == DeliveryOutcome.SKIPPED
    assert record.error == "channel type not allowed by plan"
    assert adapter.calls == 0


@pytest.mark.unit
async def test_notify_channel_ids_skips_unknown_and_foreign_channels(store, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    store.add_channel(make_channel(2, team_id=2))

    tasks = await dispatcher.notify_channel_ids(1, [1, 2, 3], _payload())
    await dispatcher.drain()

    assert len(tasks) == 1
    assert [channel_id for channel_id, _ in sent] == [1]


@pytest.mark.unit
async def test_delivery_history(dispatcher) -> None:
    dispatcher.notify_many([make_channel(1), make_channel(2)], _payload(incident_id=5))
    dispatcher.notify(make_channel(3, team_id=2), _payload(incident_id=6))
    await dispatcher.drain()

    assert dispatcher.pending == 0
    assert len(dispatcher.deliveries_for_incident(5)) == 2
    assert [r.channel_id for r in dispatcher.deliveries_for_team(2)] == [3]
    record = dispatcher.deliveries_for_incident(6)[0].to_dict()
    assert record["outcome"] == "delivered"
    assert record["kind"] == "opened"


@pytest.mark.unit
def test_resolved_payload() -> None:
    started = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    incident = IncidentRecord(
        id=3,
        monitor_id=1,
        team_id=1,
        title="API is down",
        cause="HTTP 503",
        status=IncidentStatus.RESOLVED,
        started_at=started,
        resolved_at=started + timedelta(minutes=42, seconds=30),
    )
    monitor = make_monitor(name="API")

    payload = build_incident_payload(incident, monitor, NotificationKind.RESOLVED)

    assert payload.title == "API is back up"
    assert payload.status == "up"
    assert payload.message == "Resolved after 42 min. Cause was: HTTP 503"
    assert payload.incident_status == "resolved"
    assert payload.to_dict()["kind"] == "resolved"


@pytest.mark.unit
def test_ssl_payload() -> None:
    monitor = make_monitor(name="API")

    soon = build_ssl_payload(monitor, SSLInfo(valid=True, days_until_expiry=7))
    expired = build_ssl_payload(monitor, SSLInfo(valid=False, days_until_expiry=-2, error="Certificate expired"))
    broken = build_ssl_payload(monitor, SSLInfo.failed("hostname mismatch"))

    assert soon.kind == NotificationKind.SSL_EXPIRY
    assert soon.message == "Expires in 7 days"
    assert expired.title == "SSL certificate problem on API"
    assert broken.message == "hostname mismatch"

