"""Fixtures for API tests: an unstarted runtime over InMemoryStore behind ASGITransport."""
from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from helpers import RecordingAdapter
from uptime_engine.alerting.dispatcher import NotificationDispatcher
from uptime_engine.config import Settings
from uptime_engine.main import create_app
from uptime_engine.schemas.ssl import SSLInfo
from uptime_engine.storage.memory import InMemoryStore
from uptime_engine.workers.runtime import MonitoringRuntime


class StubInspector:
    def __init__(self) -> None:
        self.info = SSLInfo(valid=True, issuer="Test CA", days_until_expiry=42)

    async def inspect_tls(self, host_or_url: str) -> SSLInfo:
        return self.info


@pytest.fixture
def api_store() -> InMemoryStore:
    return InMemoryStore()


@pytest_asyncio.fixture
async def runtime(api_store: InMemoryStore, sent: list) -> AsyncGenerator[MonitoringRuntime, None]:
    dispatcher = NotificationDispatcher(
        api_store,
        backoff_base_seconds=0,
        adapter_factory=lambda channel, defaults: RecordingAdapter(channel, sent),
    )
    runtime = MonitoringRuntime(
        api_store,
        Settings(_env_file=None, min_check_interval=30),
        dispatcher=dispatcher,
        ssl_inspector=StubInspector(),
    )
    yield runtime
    # Never started, so tear down the parts the endpoints touch
    await runtime.scheduler.stop()
    await runtime.escalation.close()
    await runtime.processor.flush()
    await dispatcher.drain(timeout=1)


@pytest_asyncio.fixture
async def client(runtime: MonitoringRuntime) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(runtime=runtime, settings=runtime.settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
