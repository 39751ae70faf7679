"""Health and readiness endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text

from reqflow import __version__
from reqflow.core.redis_client import test_redis_connection
from reqflow.core.settings import get_settings
from reqflow.db.base import get_engine
from reqflow.services.processing_client import ProcessingServiceClient, get_processing_client

logger = logging.getLogger(__name__)

router = APIRouter()


async def _database_connected() -> bool:
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


@router.get("/health", tags=["meta"])  # simple health
async def health() -> dict[str, object]:
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.environment,
        "debug": settings.debug,
        "version": __version__,
    }


@router.get("/health/dependencies", tags=["meta"])
async def dependencies_health(
    client: ProcessingServiceClient = Depends(get_processing_client),  # noqa: B008
) -> dict[str, object]:
    """Database reachability, processing service breaker state, and Redis when the lease uses it."""
    settings = get_settings()
    stages = {
        stage: bool(settings.stage_url(stage))
        for stage in ("REQUIREMENTS", "BRD", "BLUEPRINT")
    }
    body: dict[str, object] = {
        "status": "ok",
        "processing_service": client.get_stats(),
        "database_connected": await _database_connected(),
        "stages_configured": stages,
    }
    if not body["database_connected"]:
        body["status"] = "degraded"
    if settings.dispatch_lease_enabled:
        redis_ok = await test_redis_connection()
        body["redis_connected"] = redis_ok
        if not redis_ok:
            body["status"] = "degraded"
    if client.breaker.state != "closed":
        body["status"] = "degraded"
    return body
