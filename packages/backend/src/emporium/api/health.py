"""Health check endpoint.

Verifies the worker is up and its message store is reachable.
"""

from fastapi import APIRouter, Depends

from emporium import __version__
from emporium.api.dependencies import get_broadcaster, get_store
from emporium.errors import StoreUnavailable
from emporium.realtime.broadcaster import Broadcaster
from emporium.store.base import MessageStore

router = APIRouter()


@router.get("/health")
async def health_check(
    store: MessageStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Check server health and store connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await store.ping()
        checks["store"] = "ok"
    except StoreUnavailable as e:
        checks["store"] = f"error: {e}"

    status = "healthy" if checks["store"] == "ok" else "degraded"

    return {
        "status": status,
        "store_backend": store.name,
        "chat_connections": len(broadcaster),
        **checks,
    }
