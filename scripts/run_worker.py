#!/usr/bin/env python3
"""Run the monitoring engine without the HTTP API."""
from __future__ import annotations

import asyncio
import signal

from uptime_engine.config import get_settings
from uptime_engine.database import create_engine, create_session_factory, init_db
from uptime_engine.storage.sql import SqlAlchemyStore
from uptime_engine.utils.logging import get_logger, setup_logging
from uptime_engine.workers.runtime import MonitoringRuntime

setup_logging()
logger = get_logger(__name__)

settings = get_settings()


async def main() -> None:
    """Start the engine and run until SIGINT or SIGTERM."""
    logger.info("starting_workers")

    engine = create_engine(settings)
    await init_db(engine)
    runtime = MonitoringRuntime(SqlAlchemyStore(create_session_factory(engine)), settings)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await runtime.start()
        await stop.wait()
        logger.info("shutdown_requested")
    except Exception as exc:
        logger.error("worker_error", error=str(exc), exc_info=True)
        raise
    finally:
        await runtime.stop()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
