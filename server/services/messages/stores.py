"""Adapters from the database service to the row-store interface."""

from typing import List, Optional

from core.database import Database
from models.database import Message


class DatabaseRowStore:
    """RowStore backed by the SQL messages table."""

    def __init__(self, database: Database):
        self.database = database

    async def insert(self, text: str) -> int:
        return await self.database.insert_message(text)

    async def select_latest(self) -> Optional[str]:
        return await self.database.get_latest_message()

    async def count(self) -> int:
        return await self.database.count_messages()

    async def list_recent(self, limit: int) -> List[Message]:
        return await self.database.get_recent_messages(limit)
