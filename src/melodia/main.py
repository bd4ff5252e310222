"""FastAPI application factory and server entry point."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from melodia import __version__
from melodia.api.exception_handlers import register_exception_handlers
from melodia.api.routers import api_router, health
from melodia.config import Settings, get_settings
from melodia.infrastructure.lifecycle import lifespan
from melodia.infrastructure.observability import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Explicit settings (tests pass their own); defaults to the environment

    Returns:
        Configured FastAPI app. The database is opened by the lifespan, not here.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Melodia",
        version=__version__,
        description="Music library API: catalog, playlists, likes, follows and history",
        lifespan=lifespan,
    )
    # lifespan and dependencies read this instead of re-reading the environment
    app.state.settings = settings

    # Middleware order: the LAST added runs FIRST, so CORS wraps request logging.
    app.add_middleware(
        RequestLoggingMiddleware,
        log_request_body=settings.observability.log_request_body,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(api_router, prefix="/api")

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,  # configure_logging owns the handlers
    )


if __name__ == "__main__":
    run()
