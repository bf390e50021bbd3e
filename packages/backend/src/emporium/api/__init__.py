"""API route aggregation.

All routers registered here get mounted in main.py. The chat channel
itself is a websocket route and is mounted separately.
"""

from fastapi import APIRouter

from emporium.api.health import router as health_router
from emporium.api.info import router as info_router
from emporium.api.messages import router as messages_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(info_router, tags=["info"])
api_router.include_router(messages_router, tags=["chat"])
