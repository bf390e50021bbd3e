"""SQL message store — async SQLAlchemy over the chat_messages table.

Learn: Insertion order comes from the autoincrement `seq` column, not
from the formatted timestamp (which only has one-second resolution and
sorts day-first). Each operation uses its own short-lived session, so
one slow query never holds a connection for a whole websocket.
"""

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from emporium.db.engine import build_engine, build_session_factory
from emporium.db.models import Base, ChatMessageRecord
from emporium.errors import StoreUnavailable
from emporium.schemas.chat import ChatMessage, NewMessage
from emporium.store.base import MessageStore, new_message_id


class SqlMessageStore(MessageStore):
    name = "sql"

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker | None = None

    def _ensure_engine(self) -> None:
        if self._engine is None:
            self._engine = build_engine(self.database_url, echo=self.echo)
            self._sessions = build_session_factory(self._engine)

    @property
    def engine(self) -> AsyncEngine:
        self._ensure_engine()
        return self._engine

    @property
    def sessions(self) -> async_sessionmaker:
        self._ensure_engine()
        return self._sessions

    async def create_schema(self) -> None:
        """Create missing tables. Development helper; production uses Alembic."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Could not create schema: {e}") from e

    async def start(self) -> None:
        self._ensure_engine()

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None

    async def ping(self) -> None:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Database unreachable: {e}") from e

    async def get_all(self) -> list[ChatMessage]:
        try:
            async with self.sessions() as session:
                result = await session.execute(
                    select(ChatMessageRecord).order_by(ChatMessageRecord.seq)
                )
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Could not read messages: {e}") from e
        return [ChatMessage.model_validate(row) for row in rows]

    async def save(self, message: NewMessage) -> ChatMessage:
        record = ChatMessageRecord(
            id=new_message_id(),
            author=message.author,
            text=message.text,
            timestamp=message.timestamp,
        )
        try:
            async with self.sessions() as session:
                session.add(record)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Could not save message: {e}") from e
        return ChatMessage.model_validate(record)
