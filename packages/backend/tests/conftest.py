"""Test fixtures — in-memory stores, fake channels, and an app per test.

Nothing here needs a database or a network: the app runs on a
MemoryMessageStore and the broadcaster is exercised through FakeChannel,
which records every frame it is asked to send.
"""

import asyncio
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from emporium.config import Settings
from emporium.errors import StoreUnavailable
from emporium.main import create_app
from emporium.realtime import protocol
from emporium.realtime.protocol import ChannelClosed
from emporium.schemas.chat import ChatMessage, NewMessage
from emporium.store.memory import MemoryMessageStore

_HANGUP = object()


class FlakyStore(MemoryMessageStore):
    """Memory store whose reads and writes can be switched off."""

    def __init__(self):
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False

    async def ping(self) -> None:
        if self.fail_reads:
            raise StoreUnavailable("store is down")

    async def get_all(self) -> list[ChatMessage]:
        if self.fail_reads:
            raise StoreUnavailable("store is down")
        return await super().get_all()

    async def save(self, message: NewMessage) -> ChatMessage:
        if self.fail_writes:
            raise StoreUnavailable("store is down")
        return await super().save(message)


class FakeChannel:
    """In-memory Channel: frames sent are recorded, frames received are pushed."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.closed_with: int | None = None
        self.broken = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, frame: dict[str, Any]) -> None:
        if self.broken or self.closed_with is not None:
            raise ChannelClosed("peer gone")
        self.sent.append(frame)

    async def receive(self) -> tuple[str, Any]:
        item = await self._inbox.get()
        if item is _HANGUP:
            raise ChannelClosed("peer hung up")
        if isinstance(item, str):
            return protocol.parse_frame(item)
        return item

    async def close(self, code: int = protocol.CLOSE_NORMAL, reason: str = "") -> None:
        if self.closed_with is None:
            self.closed_with = code

    def push(self, event: str, data: Any) -> None:
        self._inbox.put_nowait((event, data))

    def push_raw(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def hang_up(self) -> None:
        self._inbox.put_nowait(_HANGUP)

    def events(self, name: str) -> list[Any]:
        return [f["data"] for f in self.sent if f["event"] == name]


async def settle(rounds: int = 20) -> None:
    """Let writer tasks drain their outboxes."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def test_settings():
    return Settings(environment="test", store_backend="memory", mode="FORK")


@pytest.fixture()
def store():
    return FlakyStore()


@pytest.fixture()
def app(test_settings, store):
    return create_app(test_settings, store=store)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client with the app's lifespan running.

    httpx's ASGITransport does not send lifespan events, so the fixture
    enters the lifespan itself to get app.state.store and .broadcaster.
    """
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
