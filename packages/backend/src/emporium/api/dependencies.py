"""FastAPI dependencies for per-process singletons kept on app.state."""

from fastapi import Request

from emporium.realtime.broadcaster import Broadcaster
from emporium.store.base import MessageStore


def get_store(request: Request) -> MessageStore:
    return request.app.state.store


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster
