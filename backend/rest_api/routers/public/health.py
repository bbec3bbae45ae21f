"""
Health check endpoints for the REST API.
Provides basic and detailed health status of the service and its dependencies.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from rest_api.models import OutboxEvent, OutboxStatus
from rest_api.services.events import get_outbox_processor
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import check_redis_health, get_event_circuit_breaker

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": "rest-api",
        "environment": settings.environment,
    }


def _check_database() -> dict:
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            counts = dict(
                db.execute(
                    select(OutboxEvent.status, func.count())
                    .where(OutboxEvent.status.in_([OutboxStatus.PENDING, OutboxStatus.FAILED]))
                    .group_by(OutboxEvent.status)
                ).all()
            )
    except SQLAlchemyError as e:
        logger.warning("Database health check failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
    return {
        "status": "healthy",
        "outbox_pending": counts.get(OutboxStatus.PENDING, 0),
        "outbox_failed": counts.get(OutboxStatus.FAILED, 0),
    }


@router.get("/health/detailed")
async def detailed_health_check():
    """
    Verifies the database and Redis. Returns 503 if either is down.
    """
    database = _check_database()
    redis_ok = await check_redis_health()

    checks = {
        "service": "rest-api",
        "environment": settings.environment,
        "dependencies": {
            "database": database,
            "redis": {"status": "healthy" if redis_ok else "unhealthy"},
        },
        "outbox_processor": {"running": get_outbox_processor().running},
        "circuit_breaker": get_event_circuit_breaker().get_stats(),
    }
    all_healthy = database["status"] == "healthy" and redis_ok
    checks["status"] = "healthy" if all_healthy else "degraded"

    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks
