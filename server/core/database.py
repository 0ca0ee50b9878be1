"""Async database service with SQLModel and SQLAlchemy 2.0.

Hosts the append-only messages table (the row store) and the
``cache_entries`` table used when Redis is not configured.
"""

import time
from typing import Callable, List, Optional
from contextlib import asynccontextmanager

from sqlmodel import SQLModel
from sqlalchemy import MetaData, delete, func, insert, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from core.config import Settings
from core.exceptions import StoreUnavailable
from core.logging import get_logger
from models.cache import CacheEntry
from models.database import Message, build_messages_table

logger = get_logger(__name__)

# Dialects with INSERT .. ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


class Database:
    """Async database service with SQLModel."""

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time):
        self.settings = settings
        self.engine = None
        self.async_session = None
        self._clock = clock
        self.metadata = MetaData()
        self.messages = build_messages_table(settings.messages_table, self.metadata)

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            engine_kwargs = {"echo": self.settings.database_echo}
            if not self.settings.is_sqlite:
                engine_kwargs["pool_size"] = self.settings.database_pool_size
                engine_kwargs["max_overflow"] = self.settings.database_max_overflow
                engine_kwargs["pool_pre_ping"] = True

            self.engine = create_async_engine(self.settings.database_url, **engine_kwargs)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
                await conn.run_sync(self.metadata.create_all)

            logger.info("Database initialized successfully",
                        messages_table=self.settings.messages_table)

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    # ============================================================================
    # Messages (row store)
    # ============================================================================

    async def insert_message(self, text: str) -> int:
        """Append a message and return its assigned id."""
        try:
            async with self.get_session() as session:
                result = await session.execute(insert(self.messages).values(text=text))
                await session.commit()
                message_id = result.inserted_primary_key[0]
                logger.debug("Inserted message", message_id=message_id)
                return message_id

        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to insert message", error=str(e))
            raise StoreUnavailable("insert", str(e)) from e

    async def get_latest_message(self) -> Optional[str]:
        """Text of the row with the highest id, or None for an empty table."""
        try:
            async with self.get_session() as session:
                stmt = (
                    select(self.messages.c.text)
                    .order_by(self.messages.c.id.desc())
                    .limit(1)
                )
                result = await session.execute(stmt)
                return result.scalar_one_or_none()

        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to get latest message", error=str(e))
            raise StoreUnavailable("select_latest", str(e)) from e

    async def get_recent_messages(self, limit: int) -> List[Message]:
        """Newest-first page of messages."""
        try:
            async with self.get_session() as session:
                stmt = (
                    select(self.messages)
                    .order_by(self.messages.c.id.desc())
                    .limit(limit)
                )
                result = await session.execute(stmt)
                return [Message(**row._mapping) for row in result]

        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to list messages", limit=limit, error=str(e))
            raise StoreUnavailable("list_recent", str(e)) from e

    async def count_messages(self) -> int:
        try:
            async with self.get_session() as session:
                result = await session.execute(
                    select(func.count()).select_from(self.messages)
                )
                return result.scalar_one()

        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to count messages", error=str(e))
            raise StoreUnavailable("count", str(e)) from e

    # ============================================================================
    # Cache Entries (SQL-backed Redis alternative)
    # ============================================================================

    async def get_cache_entry(self, key: str) -> Optional[str]:
        """Get cache value by key. Returns None if expired or not found."""
        async with self.get_session() as session:
            entry = await session.get(CacheEntry, key)

            if not entry:
                return None

            if entry.is_expired(self._clock()):
                await session.delete(entry)
                await session.commit()
                return None

            return entry.value

    async def set_cache_entry(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Set cache value with optional TTL in seconds."""
        now = self._clock()
        expires_at = now + ttl if ttl else None

        dialect_insert = _UPSERT_INSERTS.get(self.engine.dialect.name) if self.engine else None

        async with self.get_session() as session:
            if dialect_insert is not None:
                # Single statement, so concurrent populates of one key cannot collide
                stmt = dialect_insert(CacheEntry).values(
                    key=key, value=value, expires_at=expires_at, created_at=now
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[CacheEntry.key],
                    set_={"value": value, "expires_at": expires_at, "created_at": now},
                )
                await session.execute(stmt)
            else:
                existing = await session.get(CacheEntry, key)
                if existing:
                    existing.value = value
                    existing.expires_at = expires_at
                    existing.created_at = now
                else:
                    session.add(CacheEntry(key=key, value=value, expires_at=expires_at, created_at=now))

            await session.commit()

    async def delete_cache_entry(self, key: str) -> bool:
        """Delete cache entry by key. Returns whether a row was removed."""
        async with self.get_session() as session:
            result = await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
            await session.commit()
            return bool(result.rowcount)

    async def cleanup_expired_cache(self) -> int:
        """Remove all expired cache entries. Returns count deleted."""
        async with self.get_session() as session:
            result = await session.execute(
                delete(CacheEntry).where(
                    CacheEntry.expires_at.isnot(None),
                    CacheEntry.expires_at <= self._clock()
                )
            )
            await session.commit()
            count = result.rowcount or 0
            if count > 0:
                logger.info("Cleaned up expired cache entries", count=count)
            return count
