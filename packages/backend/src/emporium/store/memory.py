"""In-process message store.

Each worker process gets its own list, so this backend only makes sense
in FORK mode or in tests.
"""

from emporium.schemas.chat import ChatMessage, NewMessage
from emporium.store.base import MessageStore, new_message_id


class MemoryMessageStore(MessageStore):
    name = "memory"

    def __init__(self):
        self._messages: list[ChatMessage] = []

    async def ping(self) -> None:
        return None

    async def get_all(self) -> list[ChatMessage]:
        return list(self._messages)

    async def save(self, message: NewMessage) -> ChatMessage:
        stored = ChatMessage(id=new_message_id(), **message.model_dump())
        self._messages.append(stored)
        return stored

    def __len__(self) -> int:
        return len(self._messages)
