"""Cached message service.

Serves the most recently written message through a read-through cache
and invalidates the cache on every write.
"""

from core.exceptions import (
    CacheUnavailable,
    InvalidationFailure,
    MessageServiceError,
    StoreUnavailable,
    ValidationError,
)
from services.messages.protocols import KeyValueCache, RowStore
from services.messages.service import MessageService
from services.messages.stores import DatabaseRowStore

__all__ = [
    "MessageService",
    "DatabaseRowStore",
    "RowStore",
    "KeyValueCache",
    "MessageServiceError",
    "ValidationError",
    "StoreUnavailable",
    "CacheUnavailable",
    "InvalidationFailure",
]
