"""SQLAlchemy ORM models — schema for the SQL message store.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] +
mapped_column). Alembic auto-generates migrations by comparing these
models to the actual DB.

Key concepts:
- `seq` is the autoincrement key that fixes insertion order
- `id` is the public identifier sent to clients (hex UUID)
- rows are never updated or deleted
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ChatMessageRecord(Base):
    """One chat post. Append-only."""

    __tablename__ = "chat_messages"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    author: Mapped[str] = mapped_column(Text, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    # Server-formatted DD/MM/YYYY HH:mm:ss
    timestamp: Mapped[str] = mapped_column(String(19), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<ChatMessageRecord {self.id} from {self.author}>"
