"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.infrastructure.db import engine, get_db_context
from shared.config.settings import settings
from shared.config.logging import setup_logging, rest_api_logger as logger
from rest_api.models import Base
from rest_api.seed import seed


def check_production_secrets() -> None:
    """
    Log configuration problems; refuse to start with them in production.
    """
    secret_errors = settings.validate_production_secrets()
    if not secret_errors:
        return

    for error in secret_errors:
        logger.error("Configuration error: %s", error)
    if settings.environment == "production":
        raise RuntimeError(
            f"Production configuration errors: {'; '.join(secret_errors)}. "
            "Server will not start with insecure configuration."
        )
    logger.warning("Running with insecure defaults (acceptable for development only)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Initialize logging
    setup_logging()
    check_production_secrets()

    # Startup
    logger.info("Starting REST API", port=settings.rest_api_port, env=settings.environment)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")

    if settings.seed_demo_data:
        async with get_db_context() as db:
            await seed(db)

    yield

    # Shutdown
    logger.info("Shutting down REST API")
    await engine.dispose()
    logger.info("Database connections closed")
