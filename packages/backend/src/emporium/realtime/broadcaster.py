"""Broadcaster — chat connections and save-then-broadcast for one process.

Learn: Each connection moves through three states:

  connecting → active → closed

While connecting, the broadcaster reads the full history from the store.
Once it arrives, the connection gets one `messages` frame and becomes
active. Posts saved by other connections during that window are held
back and replayed after the snapshot unless the snapshot already has
them.

A post is broadcast only after MessageStore.save() returns. Fan-out
never awaits: it puts the frame on every connection's outbox, and a
writer task per connection drains its own outbox. So every client sees
broadcasts in save-completion order and a slow client never holds up
the rest.
"""

import asyncio
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import structlog
from pydantic import ValidationError

from emporium.errors import StoreUnavailable
from emporium.realtime import protocol
from emporium.realtime.protocol import ChannelClosed, InvalidFrame
from emporium.schemas.chat import (
    ChatMessage,
    HistorySnapshot,
    IncomingMessage,
    NewMessage,
    normalize,
)
from emporium.store.base import MessageStore

logger = structlog.get_logger()

# Seconds a closing connection gets to flush its outbox.
FLUSH_TIMEOUT = 5.0


class Channel(Protocol):
    """Transport for one client. Raises ChannelClosed once the peer is gone."""

    async def send(self, frame: dict[str, Any]) -> None: ...

    async def receive(self) -> tuple[str, Any]: ...

    async def close(self, code: int = protocol.CLOSE_NORMAL, reason: str = "") -> None: ...


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class Connection:
    """One client on this process, with its own outbox and writer task."""

    def __init__(self, channel: Channel):
        self.id = uuid.uuid4().hex[:12]
        self.channel = channel
        self.state = ConnectionState.CONNECTING
        self._outbox: asyncio.Queue[Optional[dict[str, Any]]] = asyncio.Queue()
        self._held: list[ChatMessage] = []
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<Connection {self.id} {self.state.value}>"

    @property
    def active(self) -> bool:
        return self.state is ConnectionState.ACTIVE

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain(), name=f"chat-writer-{self.id}")

    def send(self, frame: dict[str, Any]) -> None:
        """Queue a frame for this client only."""
        if self.state is not ConnectionState.CLOSED:
            self._outbox.put_nowait(frame)

    def deliver(self, message: ChatMessage) -> None:
        """Queue a broadcast; held back until the history snapshot is sent."""
        if self.state is ConnectionState.CONNECTING:
            self._held.append(message)
        elif self.state is ConnectionState.ACTIVE:
            self._outbox.put_nowait(protocol.frame(protocol.MESSAGE, message.model_dump()))

    def activate(self, history: HistorySnapshot) -> None:
        """Send the history snapshot, replay held posts, go active."""
        if self.state is not ConnectionState.CONNECTING:
            return
        self._outbox.put_nowait(protocol.frame(protocol.MESSAGES, history.model_dump()))
        for message in self._held:
            if message.id not in history:
                self._outbox.put_nowait(protocol.frame(protocol.MESSAGE, message.model_dump()))
        self._held.clear()
        self.state = ConnectionState.ACTIVE

    async def _drain(self) -> None:
        while True:
            frame = await self._outbox.get()
            if frame is None:
                return
            try:
                await self.channel.send(frame)
            except ChannelClosed:
                logger.debug("chat.send_to_closed", connection_id=self.id)
                self.state = ConnectionState.CLOSED
                return

    async def close(self, code: int = protocol.CLOSE_NORMAL, reason: str = "") -> None:
        """Flush what is queued, then close the transport. Idempotent."""
        if self._writer is None and self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        self._held.clear()
        writer, self._writer = self._writer, None
        if writer is not None and not writer.done():
            self._outbox.put_nowait(None)
            try:
                await asyncio.wait_for(writer, timeout=FLUSH_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("chat.flush_timeout", connection_id=self.id)
        try:
            await self.channel.close(code, reason)
        except ChannelClosed:
            pass


class Broadcaster:
    """Owns every chat connection of one worker process."""

    def __init__(
        self,
        store: MessageStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self._clock = clock
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    @property
    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    @property
    def active_connections(self) -> list[Connection]:
        return [c for c in self._connections.values() if c.active]

    # ─── Connection lifecycle ────────────────────────────────

    async def serve(self, channel: Channel) -> None:
        """Run one client from handshake to disconnect.

        Inbound events are handled one at a time, so a client's posts are
        saved and broadcast in the order it sent them.
        """
        conn = await self.open(channel)
        if conn is None:
            return
        try:
            while conn.state is not ConnectionState.CLOSED:
                try:
                    event, data = await channel.receive()
                except InvalidFrame as e:
                    conn.send(protocol.error_frame(protocol.INVALID_MESSAGE, str(e)))
                    continue
                except ChannelClosed:
                    break
                await self.handle(conn, event, data)
        finally:
            await self.disconnect(conn)

    async def open(self, channel: Channel) -> Optional[Connection]:
        """Register a connection and send it the history snapshot.

        If the store cannot be read, the client gets an error frame and the
        connection is closed with 1011. There is no retry; clients reconnect.
        """
        conn = Connection(channel)
        self._connections[conn.id] = conn
        conn.start()
        logger.info("chat.connected", connection_id=conn.id, connections=len(self))

        try:
            history = await self.store.get_all()
        except StoreUnavailable as e:
            logger.error("chat.history_failed", connection_id=conn.id, error=str(e))
            conn.send(
                protocol.error_frame(
                    protocol.HISTORY_UNAVAILABLE,
                    "Chat history is unavailable, please reconnect later",
                )
            )
            await self.disconnect(conn, code=protocol.CLOSE_INTERNAL_ERROR)
            return None
        except BaseException:
            # Never leave a half-open connection registered.
            await self.disconnect(conn, code=protocol.CLOSE_INTERNAL_ERROR)
            raise

        conn.activate(normalize(history))
        return conn

    async def disconnect(self, conn: Connection, code: int = protocol.CLOSE_NORMAL) -> None:
        if self._connections.pop(conn.id, None) is None:
            return
        await conn.close(code)
        logger.info("chat.disconnected", connection_id=conn.id, connections=len(self))

    async def close_all(self, code: int = protocol.CLOSE_GOING_AWAY) -> None:
        """Close every connection; used on process shutdown."""
        for conn in self.connections:
            await self.disconnect(conn, code=code)

    # ─── Inbound events ──────────────────────────────────────

    async def handle(self, conn: Connection, event: str, data: Any) -> None:
        if event == protocol.MESSAGE:
            await self.publish(conn, data)
        elif event == protocol.PING:
            conn.send(protocol.frame(protocol.PONG, {}))
        else:
            logger.warning("chat.unknown_event", connection_id=conn.id, event=event)
            conn.send(
                protocol.error_frame(protocol.UNKNOWN_EVENT, f"Unknown event '{event}'")
            )

    async def publish(self, conn: Connection, data: Any) -> Optional[ChatMessage]:
        """Stamp, save, then broadcast one post.

        Nothing is broadcast unless the save succeeds. A failed save is
        reported to the sender only.
        """
        try:
            incoming = IncomingMessage.model_validate(data)
        except ValidationError:
            conn.send(
                protocol.error_frame(
                    protocol.INVALID_MESSAGE,
                    "A message needs string fields 'author' and 'text'",
                )
            )
            return None

        message = NewMessage.stamp(incoming, self._clock())
        try:
            stored = await self.store.save(message)
        except StoreUnavailable as e:
            logger.error("chat.save_failed", connection_id=conn.id, error=str(e))
            conn.send(
                protocol.error_frame(
                    protocol.STORE_UNAVAILABLE,
                    "Your message could not be saved and was not sent",
                )
            )
            return None

        self.broadcast(stored)
        logger.info(
            "chat.message_broadcast",
            connection_id=conn.id,
            message_id=stored.id,
            recipients=len(self.active_connections),
        )
        return stored

    def broadcast(self, message: ChatMessage) -> None:
        """Fan a saved message out to every connection on this process."""
        for conn in self.connections:
            conn.deliver(message)
