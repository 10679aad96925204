#!/usr/bin/env python3
"""Seed database with sample data for development."""
from __future__ import annotations

import asyncio
import secrets

from uptime_engine.config import get_settings
from uptime_engine.database import create_engine, create_session_factory, init_db
from uptime_engine.models.alert_channel import AlertChannel
from uptime_engine.models.escalation import EscalationPolicy, EscalationStep
from uptime_engine.models.monitor import Monitor
from uptime_engine.utils.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

TEAM_ID = 1


async def seed_database() -> None:
    """Seed database with sample monitors, channels and an escalation policy."""
    engine = create_engine(get_settings())
    await init_db(engine)
    session_factory = create_session_factory(engine)

    async with session_factory() as db:
        try:
            monitors = [
                Monitor(
                    team_id=TEAM_ID,
                    name="Example API",
                    url="https://api.example.com/health",
                    interval_seconds=60,
                    timeout_seconds=5.0,
                    confirmation_threshold=2,
                    recovery_window_seconds=120,
                    check_ssl=True,
                ),
                Monitor(
                    team_id=TEAM_ID,
                    name="GitHub API",
                    url="https://api.github.com",
                    interval_seconds=120,
                    timeout_seconds=5.0,
                ),
                Monitor(
                    team_id=TEAM_ID,
                    name="Nightly backup",
                    url="https://backup.internal",
                    monitor_type="webhook",
                    interval_seconds=3600,
                    webhook_token=secrets.token_urlsafe(24),
                    heartbeat_interval_seconds=86400,
                ),
            ]
            oncall = AlertChannel(
                team_id=TEAM_ID,
                name="On-call webhook",
                channel_type="webhook",
                config={"url": "https://hooks.example.com/oncall"},
                immediate=True,
            )
            manager = AlertChannel(
                team_id=TEAM_ID,
                name="Engineering manager",
                channel_type="email",
                config={"to": "manager@example.com"},
                immediate=False,
            )
            db.add_all([*monitors, oncall, manager])
            await db.flush()

            db.add(
                EscalationPolicy(
                    team_id=TEAM_ID,
                    name="default",
                    steps=[
                        EscalationStep(delay_seconds=900, channel_ids=[manager.id]),
                    ],
                )
            )
            await db.commit()

            logger.info(
                "database_seeded",
                monitor_count=len(monitors),
                channel_count=2,
            )

        except Exception as exc:
            logger.error("seed_failed", error=str(exc))
            await db.rollback()
            raise
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_database())
