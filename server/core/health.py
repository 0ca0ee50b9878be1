"""Health check utilities for the /health endpoint.

Provides uptime tracking and collaborator connectivity checks.
"""
import time
from typing import Dict, Any, TYPE_CHECKING

from sqlalchemy import text

from constants import HEALTH_CHECK_KEY
from core.exceptions import CacheUnavailable

if TYPE_CHECKING:
    from core.config import Settings
    from core.database import Database
    from core.cache import CacheService

# Module-level startup time tracking
_startup_time: float = 0.0


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


async def check_database(database: "Database") -> bool:
    """Check database connectivity."""
    try:
        async with database.get_session() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


async def check_cache(cache: "CacheService") -> bool:
    """Check cache connectivity with a set/get/delete round trip."""
    try:
        await cache.set(HEALTH_CHECK_KEY, "ok", ttl=10)
        result = await cache.get(HEALTH_CHECK_KEY)
        await cache.delete(HEALTH_CHECK_KEY)
        return result == "ok"
    except CacheUnavailable:
        return False


async def get_health_status(
    database: "Database",
    cache: "CacheService",
    settings: "Settings"
) -> Dict[str, Any]:
    """Get health status for the /health endpoint.

    The service keeps answering reads without a cache, so a failed cache
    check only degrades the status.
    """
    db_healthy = await check_database(database)
    cache_healthy = await check_cache(cache)

    overall_status = "healthy" if (db_healthy and cache_healthy) else "degraded"

    return {
        "status": overall_status,
        "uptime_seconds": round(get_uptime(), 1),
        "checks": {
            "database": db_healthy,
            "cache": cache_healthy,
        },
        "cache_backend": cache.backend,
        "cache_ttl": settings.cache_ttl,
        "environment": "development" if settings.is_development else "production",
    }
