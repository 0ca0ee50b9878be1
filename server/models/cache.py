"""SQL-backed cache model for key-value storage with TTL.

Lets a single-process deployment run without Redis; entries past
``expires_at`` read as absent.
"""

import time
from typing import Optional
from sqlmodel import SQLModel, Field


class CacheEntry(SQLModel, table=True):
    """Generic key-value cache row with optional expiration."""

    __tablename__ = "cache_entries"

    key: str = Field(primary_key=True, max_length=512)
    value: str = Field(max_length=1000000)
    expires_at: Optional[float] = Field(default=None, index=True)  # Unix timestamp
    created_at: float = Field(default_factory=time.time)

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (time.time() if now is None else now)
