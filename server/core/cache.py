"""Cache service with Redis (production) or SQL (development) backend.

A single-process deployment runs fine on the SQL ``cache_entries`` table;
Redis is only needed once several workers share the cache.
"""

import json
import time
from typing import Any, Callable, Dict, Optional, Tuple, TYPE_CHECKING

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from core.config import Settings
from core.exceptions import CacheUnavailable
from core.logging import get_logger, log_cache_operation

if TYPE_CHECKING:
    from core.database import Database

logger = get_logger(__name__)

# Errors that mean "the backend is unreachable", as opposed to programming errors
_BACKEND_ERRORS = (RedisError, SQLAlchemyError, OSError, RuntimeError)


class CacheService:
    """Async key-value cache with per-entry TTL.

    Backend selection:
    - Redis: When REDIS_ENABLED=true and Redis answers at startup (production)
    - SQL: When Redis is disabled or unreachable and a database is configured
    - Memory: Process-local dict, used when neither is available

    Every backend enforces expiry itself; an expired entry reads as absent.
    Backend failures surface as ``CacheUnavailable``.
    """

    def __init__(self, settings: Settings, database: Optional["Database"] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings
        self.database = database
        self.redis: Optional[redis.Redis] = None
        self.memory_cache: Dict[str, Tuple[Any, Optional[float]]] = {}
        self.use_redis = settings.redis_enabled and bool(settings.redis_url)
        self.use_sqlite = not self.use_redis and database is not None
        self._clock = clock

    @property
    def backend(self) -> str:
        if self.use_redis and self.redis:
            return "redis"
        if self.use_sqlite and self.database:
            return "sql"
        return "memory"

    async def startup(self):
        """Initialize cache connection."""
        if self.use_redis:
            try:
                self.redis = redis.from_url(
                    self.settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_timeout=self.settings.cache_timeout,
                    socket_connect_timeout=self.settings.cache_timeout,
                )

                await self.redis.ping()
                logger.info("Redis cache initialized", url=self.settings.redis_url)

            except (RedisError, OSError) as e:
                logger.warning("Redis connection failed, falling back", error=str(e))
                if self.redis:
                    await self.redis.aclose()
                self.use_redis = False
                self.redis = None
                if self.database:
                    self.use_sqlite = True
                    logger.info("Using SQL cache (Redis fallback)")
        elif self.use_sqlite:
            logger.info("Using SQL cache (no Redis required for single-process)")
            await self.database.cleanup_expired_cache()
        else:
            logger.info("Using in-memory cache", redis_enabled=self.settings.redis_enabled)

    async def shutdown(self):
        """Close cache connections."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis cache connections closed")

        self.memory_cache.clear()

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache. None when absent or expired."""
        try:
            if self.use_redis and self.redis:
                raw = await self.redis.get(key)
            elif self.use_sqlite and self.database:
                raw = await self.database.get_cache_entry(key)
            else:
                raw = self._memory_get(key)

            value = json.loads(raw) if raw is not None else None
        except _BACKEND_ERRORS as e:
            logger.error("Cache get failed", key=key, backend=self.backend, error=str(e))
            raise CacheUnavailable("get", key, str(e)) from e
        except ValueError as e:
            # Written by another client without JSON encoding
            logger.warning("Undecodable cache entry, treating as miss", key=key,
                           backend=self.backend, error=str(e))
            return None

        log_cache_operation(logger, "get", key, hit=raw is not None, backend=self.backend)
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set value in cache with TTL in seconds (defaults to CACHE_TTL)."""
        ttl = ttl or self.settings.cache_ttl
        serialized = json.dumps(value, default=str)

        try:
            if self.use_redis and self.redis:
                await self.redis.set(key, serialized, ex=ttl)
            elif self.use_sqlite and self.database:
                await self.database.set_cache_entry(key, serialized, ttl)
            else:
                self.memory_cache[key] = (serialized, self._clock() + ttl)
        except _BACKEND_ERRORS as e:
            logger.error("Cache set failed", key=key, backend=self.backend, error=str(e))
            raise CacheUnavailable("set", key, str(e)) from e

        log_cache_operation(logger, "set", key, ttl=ttl, backend=self.backend)

    async def delete(self, key: str) -> bool:
        """Delete value from cache. Returns whether the key was present."""
        try:
            if self.use_redis and self.redis:
                deleted = bool(await self.redis.delete(key))
            elif self.use_sqlite and self.database:
                deleted = await self.database.delete_cache_entry(key)
            else:
                deleted = self.memory_cache.pop(key, None) is not None
        except _BACKEND_ERRORS as e:
            logger.error("Cache delete failed", key=key, backend=self.backend, error=str(e))
            raise CacheUnavailable("delete", key, str(e)) from e

        log_cache_operation(logger, "delete", key, deleted=deleted, backend=self.backend)
        return deleted

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self.memory_cache.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self.memory_cache[key]
            return None
        return value

    def is_redis_available(self) -> bool:
        """Check if Redis is available and connected."""
        return self.use_redis and self.redis is not None
