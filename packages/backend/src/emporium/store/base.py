"""Message store interface — append-only chat persistence.

Learn: The broadcaster only needs two operations: read the whole log
(oldest first) and append one record. Every backend wraps its own
driver errors in StoreUnavailable so callers deal with exactly one
failure type, whatever sits behind the store.

The store is the only state shared between worker processes. Backends
rely on the underlying database to serialize concurrent appends.
"""

import uuid
from abc import ABC, abstractmethod

from emporium.schemas.chat import ChatMessage, NewMessage


def new_message_id() -> str:
    return uuid.uuid4().hex


class MessageStore(ABC):
    """Abstract base for chat message stores."""

    #: Registry name, used in logs and the health endpoint.
    name: str = "abstract"

    async def start(self) -> None:
        """Open connections. Called once from the app lifespan."""

    async def close(self) -> None:
        """Release connections. Called once on shutdown."""

    async def create_schema(self) -> None:
        """Create whatever the backend needs before first use (development only)."""

    async def ping(self) -> None:
        """Raise StoreUnavailable if the backend cannot be reached."""
        await self.get_all()

    @abstractmethod
    async def get_all(self) -> list[ChatMessage]:
        """Every persisted message in insertion order."""

    @abstractmethod
    async def save(self, message: NewMessage) -> ChatMessage:
        """Append one message and return it with its store-assigned id."""
