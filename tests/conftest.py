"""
Pytest configuration and shared fixtures.

Engine tests run against InMemoryStore and a recording channel adapter, so
no network access is needed. SQL store tests use SQLite in-memory via
aiosqlite, no running PostgreSQL required.
"""
from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from helpers import RecordingAdapter
from uptime_engine.alerting.dispatcher import NotificationDispatcher
from uptime_engine.database import create_session_factory
from uptime_engine.models import Base
from uptime_engine.services.check_processor import CheckProcessor
from uptime_engine.services.escalation_engine import EscalationEngine
from uptime_engine.services.incident_service import IncidentManager
from uptime_engine.storage.memory import InMemoryStore

SQLITE_URL = "sqlite+aiosqlite:///:memory:"


# ── Engine fixtures ──────────────────────────────────────────────────────────
@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def sent() -> list:
    """(channel_id, payload) pairs delivered through the recording adapter."""
    return []


@pytest.fixture
def dispatcher(store: InMemoryStore, sent: list) -> NotificationDispatcher:
    return NotificationDispatcher(
        store,
        backoff_base_seconds=0,
        adapter_factory=lambda channel, defaults: RecordingAdapter(channel, sent),
    )


@pytest.fixture
def escalation(store: InMemoryStore, dispatcher: NotificationDispatcher) -> EscalationEngine:
    return EscalationEngine(store, dispatcher)


@pytest_asyncio.fixture
async def incidents(
    store: InMemoryStore,
    dispatcher: NotificationDispatcher,
    escalation: EscalationEngine,
) -> AsyncGenerator[IncidentManager, None]:
    manager = IncidentManager(
        store, dispatcher, escalation, write_retries=0, retry_base_seconds=0
    )
    yield manager
    await escalation.close()
    await dispatcher.drain(timeout=1)


@pytest.fixture
def processor(store: InMemoryStore, incidents: IncidentManager) -> CheckProcessor:
    return CheckProcessor(store, incidents, write_retries=0, retry_base_seconds=0)


# ── SQLite in-memory engine ───────────────────────────────────────────────────
@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory SQLite engine per test function."""
    engine = create_async_engine(
        SQLITE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # every session sees the same in-memory database
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine):
    return create_session_factory(db_engine)
