"""Main application entry point with app factory and lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from cyclescope.api.app import create_api_app
from cyclescope.core.config import settings, validate_config
from cyclescope.core.logging import get_logger, setup_logging
from cyclescope.database.connection import close_database, init_database
from cyclescope.services.pipeline import CaptureOrchestrator


logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    setup_logging()
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    if settings.is_production:
        validate_config()
    missing = settings.missing_required()
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)}")

    if not getattr(app.state, "orchestrator", None):
        app.state.orchestrator = CaptureOrchestrator.from_settings()
    app.state.orchestrator.store.ensure_root()

    if settings.database_url:
        if await init_database():
            logger.info("Database ready")
    else:
        logger.warning("DATABASE_URL not set, analysis results will not be stored")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.orchestrator.wait_for_background()
    await close_database()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    return create_api_app(lifespan=lifespan)


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cyclescope.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
