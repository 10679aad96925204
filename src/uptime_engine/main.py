from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from uptime_engine import __version__
from uptime_engine.api.v1 import incidents, monitors, webhooks
from uptime_engine.config import Settings, get_settings
from uptime_engine.database import create_engine, create_session_factory, init_db
from uptime_engine.dependencies import RuntimeDep
from uptime_engine.storage.sql import SqlAlchemyStore
from uptime_engine.utils.logging import get_logger, setup_logging
from uptime_engine.workers.runtime import MonitoringRuntime

# Setup logging
setup_logging()
logger = get_logger(__name__)


def create_app(
    runtime: MonitoringRuntime | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Build the API application.

    With no ``runtime`` the lifespan connects to the configured database and
    runs the engine for the lifetime of the app. A runtime passed in is
    attached as-is and its lifecycle stays with the caller.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("application_startup")
        if runtime is not None:
            yield
            logger.info("application_shutdown")
            return

        engine = create_engine(settings)
        # Development only - use Alembic migrations in production
        await init_db(engine)
        store = SqlAlchemyStore(create_session_factory(engine))
        owned = MonitoringRuntime(store, settings)
        await owned.start()
        app.state.runtime = owned

        yield

        await owned.stop()
        await engine.dispose()
        logger.info("application_shutdown")

    app = FastAPI(
        title="Uptime Engine API",
        description="Check scheduling, incident tracking, escalation and notification engine",
        version=__version__,
        lifespan=lifespan,
    )
    if runtime is not None:
        app.state.runtime = runtime

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        webhooks.router,
        prefix="/api/v1/webhooks",
        tags=["webhooks"],
    )
    app.include_router(
        incidents.router,
        prefix="/api/v1/incidents",
        tags=["incidents"],
    )
    app.include_router(
        monitors.router,
        prefix="/api/v1/monitors",
        tags=["monitors"],
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/api/v1/stats")
    async def get_stats(runtime: RuntimeDep) -> dict[str, Any]:
        """Engine counters: timers, queue depth, open incidents, pending notifications."""
        return runtime.stats()

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Uptime Engine API",
            "version": __version__,
            "docs": "/docs",
        }

    return app


app = create_app()
