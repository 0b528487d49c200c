"""FastAPI application factory."""

import logging

from fastapi import FastAPI

from spotlens import __version__
from spotlens.api.exception_handlers import register_exception_handlers
from spotlens.api.routers import api_router, health
from spotlens.config import Settings, get_settings
from spotlens.infrastructure.lifecycle import lifespan
from spotlens.infrastructure.observability.middleware import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


def _configure_tracing(app: FastAPI, settings: Settings) -> None:
    # Imported lazily so the OTLP exporter only loads when tracing is on
    from spotlens.infrastructure.observability.tracing import (
        configure_tracing,
        instrument_fastapi,
        instrument_httpx,
    )

    configure_tracing(
        service_name=settings.app_name,
        environment=settings.environment,
        otlp_endpoint=settings.observability.otlp_endpoint,
    )
    instrument_fastapi(app)
    instrument_httpx()


# Hey future me - instrumentation adds middleware, and Starlette refuses new middleware
# once the app has started. That's why tracing is wired here and not in the lifespan.
def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use, defaults to get_settings()

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="SpotLens",
        description="Playlist search and top-content analytics on top of Spotify",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix="/api")
    app.include_router(health.router)

    if settings.observability.enable_tracing:
        _configure_tracing(app, settings)

    return app


app = create_app()
