"""Capability interfaces the message service depends on.

Any ordered store with monotonic ids satisfies ``RowStore``; any cache
with per-key expiry satisfies ``KeyValueCache``.
"""

from typing import Any, List, Optional, Protocol, runtime_checkable

from models.database import Message


@runtime_checkable
class RowStore(Protocol):
    """Append-only table of message text."""

    async def insert(self, text: str) -> int:
        ...

    async def select_latest(self) -> Optional[str]:
        ...

    async def count(self) -> int:
        ...

    async def list_recent(self, limit: int) -> List[Message]:
        ...


@runtime_checkable
class KeyValueCache(Protocol):
    """Key-value namespace that expires entries on its own."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ...

    async def delete(self, key: str) -> bool:
        ...
