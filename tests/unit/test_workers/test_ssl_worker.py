"""Unit tests for SSLSweepWorker with a stubbed inspector."""
from __future__ import annotations

import pytest

from helpers import make_channel, make_monitor
from uptime_engine.alerting.base import NotificationKind
from uptime_engine.schemas.ssl import SSLInfo
from uptime_engine.workers.ssl_worker import SSLSweepWorker


class StubInspector:
    def __init__(self, infos: dict[str, SSLInfo]):
        self.infos = infos
        self.inspected: list[str] = []

    async def inspect_tls(self, host_or_url: str) -> SSLInfo:
        self.inspected.append(host_or_url)
        return self.infos[host_or_url]


@pytest.mark.unit
@pytest.mark.parametrize(
    "info,expected",
    [
        (SSLInfo(valid=True, days_until_expiry=90), False),
        (SSLInfo(valid=True, days_until_expiry=30), True),
        (SSLInfo(valid=True, days_until_expiry=-2), True),
        (SSLInfo.failed("Connection refused"), True),
    ],
)
def test_needs_alert(store, dispatcher, info, expected) -> None:
    worker = SSLSweepWorker(store, StubInspector({}), dispatcher, alert_days=30)
    assert worker.needs_alert(info) is expected


@pytest.mark.unit
async def test_sweep_alerts_expiring_certificates(store, dispatcher, sent) -> None:
    store.add_channel(make_channel(1))
    store.add_monitor(make_monitor(1, url="https://ok.example.com", check_ssl=True))
    store.add_monitor(make_monitor(2, url="https://soon.example.com", check_ssl=True))
    store.add_monitor(make_monitor(3, url="http://plain.example.com", check_ssl=True))
    store.add_monitor(make_monitor(4, url="https://quiet.example.com", check_ssl=True, alerts_enabled=False))
    inspector = StubInspector(
        {
            "https://ok.example.com": SSLInfo(valid=True, days_until_expiry=200),
            "https://soon.example.com": SSLInfo(valid=True, days_until_expiry=5),
            "https://quiet.example.com": SSLInfo(valid=True, days_until_expiry=1),
        }
    )
    worker = SSLSweepWorker(store, inspector, dispatcher, alert_days=14)

    alerted = await worker.sweep()
    await dispatcher.drain()

    assert alerted == 1
    assert "http://plain.example.com" not in inspector.inspected
    assert set(worker.latest) == {1, 2, 4}
    assert len(sent) == 1
    channel_id, payload = sent[0]
    assert channel_id == 1
    assert payload.kind == NotificationKind.SSL_EXPIRY
    assert payload.monitor_id == 2
    assert payload.message.startswith("Expires in 5 days")


@pytest.mark.unit
async def test_sweep_without_channels(store, dispatcher, sent) -> None:
    store.add_monitor(make_monitor(1, url="https://bad.example.com", check_ssl=True))
    inspector = StubInspector({"https://bad.example.com": SSLInfo.failed("certificate verify failed")})
    worker = SSLSweepWorker(store, inspector, dispatcher)

    assert await worker.sweep() == 0
    assert worker.latest[1].valid is False
    assert sent == []
