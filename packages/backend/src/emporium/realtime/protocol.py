"""Wire protocol for the chat channel.

Every frame is a JSON object: {"event": <name>, "data": <payload>}.
"""

import json
from typing import Any

# ─── Event names ─────────────────────────────────────────

MESSAGES = "messages"  # server → client, history snapshot on connect
MESSAGE = "message"  # both ways: a post in, a persisted post out
ERROR = "error"  # server → client, only to the affected connection
PING = "ping"
PONG = "pong"

# ─── Error codes ─────────────────────────────────────────

HISTORY_UNAVAILABLE = "history_unavailable"
STORE_UNAVAILABLE = "store_unavailable"
INVALID_MESSAGE = "invalid_message"
UNKNOWN_EVENT = "unknown_event"

# WebSocket close codes (RFC 6455)
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_INTERNAL_ERROR = 1011


class ChannelClosed(Exception):
    """The peer went away; nothing more can be sent or received."""


class InvalidFrame(ValueError):
    """An inbound frame that is not a well-formed event envelope."""


def frame(event: str, data: Any) -> dict[str, Any]:
    return {"event": event, "data": data}


def error_frame(code: str, message: str) -> dict[str, Any]:
    return frame(ERROR, {"code": code, "message": message})


def parse_frame(raw: str) -> tuple[str, Any]:
    """Decode one inbound text frame into (event, data)."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidFrame(f"Frame is not valid JSON: {e.msg}") from e
    if not isinstance(payload, dict):
        raise InvalidFrame("Frame must be a JSON object")
    event = payload.get("event")
    if not isinstance(event, str) or not event:
        raise InvalidFrame("Frame is missing an event name")
    return event, payload.get("data")
