"""FastAPI application factory."""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bible_study_engine.apps.api.middleware import CorrelationIdMiddleware
from bible_study_engine.apps.api.user_locks import lock_cleanup_task
from bible_study_engine.core.logging import get_logger
from bible_study_engine.services import ServiceContainer, runtime

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Register services at startup and release their clients on shutdown."""
    logger.info("Initializing bible study engine...")
    services = getattr(app.state, "services", None)
    if isinstance(services, ServiceContainer):
        runtime.set_services(services)
    cleanup = asyncio.create_task(
        lock_cleanup_task(services if isinstance(services, ServiceContainer) else None)
    )
    logger.info("bible study engine ready.")
    try:
        yield
    finally:
        cleanup.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup
        if isinstance(services, ServiceContainer):
            await services.aclose()
        logger.info("bible study engine stopped.")


def create_app(services: ServiceContainer | None = None) -> FastAPI:
    """Build the FastAPI application with configured routers."""
    if services is None:
        raise RuntimeError("Service container must be provided when creating the app.")
    app = FastAPI(title="Bible Study Engine", lifespan=lifespan)
    app.state.services = services
    runtime.set_services(services)
    app.add_middleware(CorrelationIdMiddleware)

    # pylint: disable=import-outside-toplevel
    from .routes import agents, chat, content, conversations, health, voice

    app.include_router(health.router)
    app.include_router(chat.router)
    app.include_router(agents.router)
    app.include_router(content.router)
    app.include_router(conversations.router)
    app.include_router(voice.router)
    return app


__all__ = ["create_app", "lifespan"]
