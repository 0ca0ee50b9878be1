"""Message model and row-store table definition.

The table name is deployment configuration, so the table is built per
name at startup instead of being declared as a fixed SQLModel table.
"""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, Integer, MetaData, Table, Text, func


class Message(SQLModel):
    """A stored message. ``id`` grows strictly with insertion order."""

    id: int
    text: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def build_messages_table(name: str, metadata: MetaData) -> Table:
    """Declare the append-only messages table under ``name``."""
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("text", Text, nullable=False),
        Column(
            "created_at",
            DateTime(timezone=True),
            nullable=False,
            default=lambda: datetime.now(timezone.utc),
            server_default=func.now(),
        ),
    )
