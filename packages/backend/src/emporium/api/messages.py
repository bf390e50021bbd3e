"""Chat history over plain HTTP.

Returns the same normalized snapshot a websocket client receives as its
`messages` event, for clients that only need to read.
"""

from fastapi import APIRouter, Depends, HTTPException

from emporium.api.dependencies import get_store
from emporium.errors import StoreUnavailable
from emporium.schemas.chat import HistorySnapshot, normalize
from emporium.store.base import MessageStore

router = APIRouter()


@router.get("/messages", response_model=HistorySnapshot)
async def list_messages(store: MessageStore = Depends(get_store)):
    """Full chat history, oldest first, as {ids, entities}."""
    try:
        messages = await store.get_all()
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return normalize(messages)
