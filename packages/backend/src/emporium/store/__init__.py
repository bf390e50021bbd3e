"""Message store registry — pluggable chat persistence backends.

The registry provides a simple interface:
    store = create_store(settings)
    await store.start()
    history = await store.get_all()

Backends are picked by EMPORIUM_STORE_BACKEND (memory, sql, redis).
"""

from typing import Callable

from emporium.config import Settings
from emporium.store.base import MessageStore
from emporium.store.memory import MemoryMessageStore

__all__ = [
    "MessageStore",
    "MemoryMessageStore",
    "create_store",
    "list_backends",
]


def _memory(settings: Settings) -> MessageStore:
    return MemoryMessageStore()


def _sql(settings: Settings) -> MessageStore:
    from emporium.store.sql import SqlMessageStore

    return SqlMessageStore(settings.database_url, echo=settings.debug)


def _redis(settings: Settings) -> MessageStore:
    from emporium.store.redis import RedisMessageStore

    return RedisMessageStore(settings.redis_url, key=settings.redis_messages_key)


# ─── Registry ──────────────────────────────────────────────

_BACKENDS: dict[str, Callable[[Settings], MessageStore]] = {
    "memory": _memory,
    "sql": _sql,
    "redis": _redis,
}


def create_store(settings: Settings) -> MessageStore:
    """Build the store selected by settings.store_backend.

    Raises ValueError if the backend is not registered.
    """
    factory = _BACKENDS.get(settings.store_backend)
    if not factory:
        available = ", ".join(sorted(_BACKENDS.keys()))
        raise ValueError(
            f"Unknown store backend '{settings.store_backend}'. Available: {available}"
        )
    return factory(settings)


def list_backends() -> list[str]:
    """List registered backend names."""
    return sorted(_BACKENDS.keys())
