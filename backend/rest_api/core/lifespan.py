"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import select

from rest_api.models import Base, StoreSettings
from rest_api.services.events.outbox_processor import start_outbox_processor, stop_outbox_processor
from shared.config.logging import rest_api_logger as logger, setup_logging
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal, engine, safe_commit
from shared.infrastructure.events import close_redis_pool


def ensure_store_settings() -> None:
    """Create the single store settings row on first start."""
    with SessionLocal() as db:
        if db.scalar(select(StoreSettings.id).limit(1)) is None:
            db.add(StoreSettings(order_approval_mode=settings.default_order_approval_mode))
            safe_commit(db)
            logger.info("Store settings created", mode=settings.default_order_approval_mode)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        logger.warning("Running with insecure defaults (acceptable for development only)")

    logger.info("Starting REST API", port=settings.rest_api_port, env=settings.environment)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")
    ensure_store_settings()

    # Change-feed: publish outbox rows to the session channels
    await start_outbox_processor()
    logger.info("Outbox processor started")

    yield

    logger.info("Shutting down REST API")

    await stop_outbox_processor()
    logger.info("Outbox processor stopped")

    await close_redis_pool()
    logger.info("Redis connection pool closed")
