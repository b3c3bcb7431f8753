"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure structured logging
3. Create the access registry
4. Start webhook notifications (when configured) and the expiry sweeper

Shutdown order:
1. Stop the expiry sweeper
2. Drain and stop notifications
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medisync import __version__
from medisync.access.registry import DocumentAccessRegistry
from medisync.access.sweeper import ExpirySweeper
from medisync.api.router import api_v1_router, public_router
from medisync.config import get_settings
from medisync.services.notifications import NotificationDispatcher
from medisync.telemetry.logging import RequestIdMiddleware, configure_logging

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    settings = get_settings()

    configure_logging(
        json_logs=settings.is_prod,
        log_level="DEBUG" if settings.debug else "INFO",
    )
    log.info("app.starting", environment=settings.environment)

    registry = DocumentAccessRegistry()
    app.state.access_registry = registry

    dispatcher: NotificationDispatcher | None = None
    if settings.notification_webhook_url:
        secret = settings.notification_webhook_secret
        dispatcher = NotificationDispatcher(
            settings.notification_webhook_url,
            secret=secret.get_secret_value() if secret else None,
            timeout_seconds=settings.notification_timeout_seconds,
        )
        await dispatcher.start()
        registry.add_listener(dispatcher)

    sweeper = ExpirySweeper(registry, interval_seconds=settings.expiry_sweep_interval_seconds)
    await sweeper.start()
    app.state.expiry_sweeper = sweeper

    log.info("app.started")
    try:
        yield
    finally:
        log.info("app.shutting_down")
        await sweeper.shutdown()
        if dispatcher is not None:
            registry.remove_listener(dispatcher)
            await dispatcher.shutdown()
        log.info("app.stopped")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="MediSync Access",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(public_router)
    app.include_router(api_v1_router)
    return app


# Module-level app instance for uvicorn: `uvicorn medisync.main:app`
app = create_app()
