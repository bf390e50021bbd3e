"""WebSocket endpoint — the chat channel on the shared HTTP listener.

Learn: The route itself is thin. It accepts the socket, wraps it in a
Channel that speaks the {"event", "data"} frame format, and hands it to
the process's Broadcaster, which owns it until the client leaves.
"""

from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from emporium.realtime import protocol
from emporium.realtime.broadcaster import Broadcaster
from emporium.realtime.protocol import ChannelClosed, InvalidFrame

logger = structlog.get_logger()
router = APIRouter()


class WebSocketChannel:
    """Adapts a Starlette WebSocket to the Broadcaster's Channel protocol."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    @property
    def connected(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, frame: dict[str, Any]) -> None:
        try:
            await self.websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            raise ChannelClosed(str(e)) from e

    async def receive(self) -> tuple[str, Any]:
        try:
            message = await self.websocket.receive()
        except (WebSocketDisconnect, RuntimeError) as e:
            raise ChannelClosed(str(e)) from e
        if message["type"] == "websocket.disconnect":
            raise ChannelClosed(f"Client disconnected ({message.get('code')})")

        # Binary frames are accepted when they carry UTF-8 JSON.
        if message.get("text") is not None:
            raw = message["text"]
        elif message.get("bytes") is not None:
            try:
                raw = message["bytes"].decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidFrame("Binary frame is not UTF-8 text") from e
        else:
            raise InvalidFrame("Frame has no payload")
        return protocol.parse_frame(raw)

    async def close(self, code: int = protocol.CLOSE_NORMAL, reason: str = "") -> None:
        if not self.connected:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except (RuntimeError, OSError) as e:
            raise ChannelClosed(str(e)) from e


@router.websocket("/ws/chat")
async def chat_websocket(websocket: WebSocket):
    """Realtime chat: history on connect, then save-and-broadcast posts."""
    broadcaster: Broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    await broadcaster.serve(WebSocketChannel(websocket))
