"""Read-through cached access to the latest message.

Reads check the cache first and fall back to the row store on a miss,
repopulating the cache with a bounded TTL. Writes append to the row store
and then delete the cache entry so the next read refetches.

Known race, kept on purpose: a reader that fetched the old latest value
from the store just before a write commits can repopulate the cache after
the write's delete. The stale entry survives until its TTL lapses. Closing
this needs versioned entries (e.g. caching ``(id, text)`` and refusing to
overwrite a higher id), which this service does not do.
"""

import asyncio
import time
from typing import Any, Awaitable, List, Optional, Set

from core.config import Settings
from core.exceptions import (
    InvalidationFailure,
    StoreUnavailable,
    ValidationError,
)
from core.logging import get_logger, log_execution_time
from models.database import Message
from services.messages.protocols import KeyValueCache, RowStore

logger = get_logger(__name__)


class MessageService:
    """Mediates between the row store and the cache. Holds no message state."""

    def __init__(self, store: RowStore, cache: KeyValueCache, settings: Settings):
        self.store = store
        self.cache = cache
        self.cache_key = settings.message_cache_key
        self.cache_ttl = settings.cache_ttl
        self.empty_text = settings.empty_message_text
        self.cache_empty_default = settings.cache_empty_default
        self.max_length = settings.message_max_length
        self.store_timeout = settings.store_timeout
        self.cache_timeout = settings.cache_timeout
        self._pending: Set[asyncio.Task] = set()

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_latest_message(self) -> str:
        """Latest message text, served from cache when possible.

        Returns the configured placeholder when the store is empty.
        Raises StoreUnavailable if the cache misses and the store cannot answer.
        """
        cached = await self._cache_get()
        if cached is not None:
            return cached

        latest = await self._store_call("select_latest", self.store.select_latest())

        if latest is None:
            logger.debug("Row store empty, using placeholder", cache_key=self.cache_key)
            if self.cache_empty_default:
                await self._cache_set(self.empty_text)
            return self.empty_text

        await self._cache_set(latest)
        return latest

    async def recent_messages(self, limit: int) -> List[Message]:
        """Newest-first messages straight from the row store."""
        return await self._store_call("list_recent", self.store.list_recent(limit))

    async def message_count(self) -> int:
        return await self._store_call("count", self.store.count())

    # =========================================================================
    # Writes
    # =========================================================================

    def validate(self, text: Any) -> str:
        if not isinstance(text, str):
            raise ValidationError("Message text must be a string")
        if not text.strip():
            raise ValidationError("Message text must not be empty")
        if len(text) > self.max_length:
            raise ValidationError(f"Message text exceeds {self.max_length} characters")
        return text

    async def submit_message(self, text: str) -> int:
        """Append ``text`` and invalidate the cached latest value.

        Raises ValidationError before touching the store, StoreUnavailable if
        the insert fails. A failed invalidation is logged, not raised.
        """
        text = self.validate(text)
        start = time.perf_counter()

        try:
            message_id = await self._store_call("insert", self.store.insert(text))
        except asyncio.CancelledError:
            # The insert may have committed before the cancellation landed
            self._spawn_invalidation(None)
            raise

        # Runs to completion even if the caller is cancelled from here on
        await asyncio.shield(self._spawn_invalidation(message_id))

        log_execution_time(logger, "submit_message", start, time.perf_counter(),
                           message_id=message_id)
        return message_id

    async def wait_for_pending(self) -> None:
        """Wait for invalidations still running in the background."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # =========================================================================
    # Collaborator calls
    # =========================================================================

    async def _store_call(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Row store timed out", operation=operation, timeout=self.store_timeout)
            raise StoreUnavailable(operation, f"timed out after {self.store_timeout}s") from e

    async def _cache_get(self) -> Optional[str]:
        # Any cache failure is a miss; reads fail only on the row store
        try:
            value = await asyncio.wait_for(self.cache.get(self.cache_key), timeout=self.cache_timeout)
        except Exception as e:
            logger.warning("Cache read failed, treating as miss", cache_key=self.cache_key, error=repr(e))
            return None

        if value is not None and not isinstance(value, str):
            logger.warning("Ignoring non-text cache entry", cache_key=self.cache_key,
                           value_type=type(value).__name__)
            return None
        return value

    async def _cache_set(self, value: str) -> None:
        try:
            await asyncio.wait_for(
                self.cache.set(self.cache_key, value, self.cache_ttl),
                timeout=self.cache_timeout,
            )
        except Exception as e:
            logger.warning("Cache populate failed", cache_key=self.cache_key, error=repr(e))

    def _spawn_invalidation(self, message_id: Optional[int]) -> asyncio.Task:
        task = asyncio.ensure_future(self._invalidate(message_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _invalidate(self, message_id: Optional[int]) -> bool:
        try:
            await asyncio.wait_for(self.cache.delete(self.cache_key), timeout=self.cache_timeout)
            return True
        except Exception as e:
            failure = InvalidationFailure(self.cache_key, message_id, e)
            logger.error("Cache invalidation failed, entry will expire via TTL",
                         cache_key=self.cache_key, message_id=message_id,
                         ttl=self.cache_ttl, error=str(failure))
            return False
