"""Pydantic schemas for chat messages and the history snapshot.

The timestamp is always produced on the server, formatted as
DD/MM/YYYY HH:mm:ss. Clients only ever send author and text.
"""

from datetime import datetime
from typing import Iterable

from pydantic import BaseModel, Field

TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"


def format_timestamp(moment: datetime) -> str:
    """Render a datetime in the chat's DD/MM/YYYY HH:mm:ss format."""
    return moment.strftime(TIMESTAMP_FORMAT)


# ─── Messages ─────────────────────────────────────────────


class IncomingMessage(BaseModel):
    """A post as submitted by a client. Content is not validated."""

    author: str
    text: str


class NewMessage(BaseModel):
    """A post stamped by the server, ready to be persisted."""

    author: str
    text: str
    timestamp: str

    @classmethod
    def stamp(cls, incoming: IncomingMessage, now: datetime) -> "NewMessage":
        return cls(
            author=incoming.author,
            text=incoming.text,
            timestamp=format_timestamp(now),
        )


class ChatMessage(BaseModel):
    """A persisted post. Immutable once stored."""

    id: str
    author: str
    text: str
    timestamp: str

    model_config = {"frozen": True, "from_attributes": True}


# ─── History ──────────────────────────────────────────────


class HistorySnapshot(BaseModel):
    """Normalized history: entities keyed by id plus their order."""

    ids: list[str] = Field(default_factory=list)
    entities: dict[str, ChatMessage] = Field(default_factory=dict)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self.entities


def normalize(messages: Iterable[ChatMessage]) -> HistorySnapshot:
    """Flatten a message list into ids + entities, oldest first.

    A repeated id keeps its first position and its first body.
    """
    snapshot = HistorySnapshot()
    for message in messages:
        if message.id in snapshot.entities:
            continue
        snapshot.ids.append(message.id)
        snapshot.entities[message.id] = message
    return snapshot
