"""FastAPI application entry point."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voicecaller.api.v1 import calls, campaigns, webhooks
from voicecaller.config import get_settings
from voicecaller.logging_config import configure_logging
from voicecaller.services.dependencies import get_pending_calls, get_session_registry
from voicecaller.websocket import media_stream

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)
    logger.info("app_starting", app_name=settings.app_name, twilio_mock=settings.twilio_use_mock)

    sweeper = asyncio.create_task(
        get_pending_calls().run_sweeper(settings.pending_call_sweep_seconds)
    )
    yield

    # Shutdown
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    for session in get_session_registry().active_sessions():
        await session.close()
    logger.info("app_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Outbound voice campaigns bridged to a conversational AI agent",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(calls.router, prefix="/api/v1")
    app.include_router(campaigns.router, prefix="/api/v1")
    app.include_router(webhooks.router)  # No prefix - Twilio needs exact paths

    # WebSocket routers
    app.include_router(media_stream.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
