"""
FastAPI application factory.

Creates and configures the main application instance.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smsreminder import __version__
from smsreminder.api.dependencies import build_container
from smsreminder.api.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from smsreminder.api.middleware.error_handler import setup_exception_handlers
from smsreminder.api.routes import (
    delivery_router,
    health_router,
    reminders_router,
    transcription_router,
)
from smsreminder.config import configure_logging, get_logger, get_settings
from smsreminder.core.exceptions import ConfigurationError
from smsreminder.infrastructure.storage.sqlite.migrations.migrator import run_migrations

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.

    Validates configuration, migrates the database and builds the service
    container on startup; releases every adapter on shutdown.
    """
    settings = get_settings()
    configure_logging()

    logger.info(
        "application_starting",
        environment=settings.environment,
        host=settings.api.host,
        port=settings.api.port,
    )

    problems = settings.validate_runtime()
    if problems and settings.environment == "production":
        raise ConfigurationError(
            "Invalid production configuration: " + "; ".join(problems),
            details={"problems": problems},
        )
    for problem in problems:
        logger.warning("configuration_warning", problem=problem)

    try:
        await run_migrations(settings.storage.db_path)
        logger.info("database_initialized")
    except Exception as e:
        logger.error("database_init_failed", error=str(e))
        raise

    http_client = httpx.AsyncClient()
    container = await build_container(settings, http_client=http_client)
    app.state.container = container

    logger.info("application_started")

    yield

    logger.info("application_stopping")
    await container.close()
    app.state.container = None
    logger.info("application_stopped")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    app = FastAPI(
        title="SMS Reminder API",
        description="Schedule SMS reminders and deliver them at fire time",
        version=__version__,
        docs_url="/docs" if settings.api.debug else None,
        redoc_url="/redoc" if settings.api.debug else None,
        lifespan=lifespan,
    )

    # Add middleware
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)

    # CORS
    if settings.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.api.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    setup_exception_handlers(app)

    # Register routers
    app.include_router(health_router)
    app.include_router(delivery_router)
    app.include_router(reminders_router)
    app.include_router(transcription_router)

    # Root health endpoint (for k8s/docker health checks)
    @app.get("/health")
    async def root_health() -> dict[str, str]:
        """Simple health check at root level."""
        return {
            "status": "healthy",
            "version": __version__,
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "smsreminder.api.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.debug,
    )
