"""
Health check endpoints.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict

import sentry_sdk
from fastapi import APIRouter, Depends

from app.dependencies import Services, get_services
from socialpublish import __version__
from socialpublish.storage import Database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _ping(database: Database) -> None:
    with database.transaction() as conn:
        conn.execute("SELECT 1").fetchone()


async def get_database_status(database: Database) -> Dict[str, Any]:
    """
    Check SQLite connectivity.

    Runs a trivial query and reports its latency.
    """
    start_time = time.perf_counter()
    try:
        await database.run(_ping, database)
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return {"connected": False, "error": str(e)[:100]}

    latency_ms = (time.perf_counter() - start_time) * 1000
    return {"connected": True, "latency_ms": round(latency_ms, 2)}


def get_sentry_status(services: Services) -> Dict[str, Any]:
    """Whether Sentry is configured and its client is active."""
    configured = services.settings.is_sentry_configured
    return {
        "configured": configured,
        "active": configured and sentry_sdk.get_client().is_active(),
    }


@router.get("/health", summary="System health check")
async def health_check(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """
    Health check endpoint for monitoring and load balancers.

    The service is healthy when its database answers; platform integrations
    are reported but never make the service unhealthy.
    """
    db_status = await get_database_status(services.database)
    sentry_status = get_sentry_status(services)

    return {
        "status": "healthy" if db_status["connected"] else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "environment": services.settings.security.environment,
        "services": {
            "database": {
                "status": "up" if db_status["connected"] else "down",
                "latency_ms": db_status.get("latency_ms"),
            },
            "sentry": {
                "status": "up" if sentry_status["active"] else (
                    "unconfigured" if not sentry_status["configured"] else "down"
                ),
            },
        },
        "platforms": {
            target.value: services.publisher.get_platform(target).is_configured
            for target in services.publisher.platforms
        },
    }
