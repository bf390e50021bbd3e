"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan opens the message store and builds this process's
Broadcaster; on shutdown it closes every chat connection, then the store.
Each worker process calls create_app() itself, so nothing here is
shared between workers.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from emporium import __version__
from emporium.api import api_router
from emporium import config
from emporium.config import Settings
from emporium.errors import StoreUnavailable
from emporium.middleware.request_id import RequestIdMiddleware
from emporium.realtime.broadcaster import Broadcaster
from emporium.realtime.websocket import router as ws_router
from emporium.store import MessageStore, create_store
from emporium.supervisor.modes import current_role

logger = structlog.get_logger()


def build_lifespan(settings: Settings, store: Optional[MessageStore] = None):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown lifecycle."""
        message_store = store if store is not None else create_store(settings)
        logger.info(
            "emporium.starting",
            version=__version__,
            environment=settings.environment,
            role=current_role().value,
            store=message_store.name,
        )

        await message_store.start()
        if settings.environment == "development":
            try:
                await message_store.create_schema()
            except StoreUnavailable as e:
                logger.warning("emporium.schema_unavailable", error=str(e))

        app.state.store = message_store
        app.state.broadcaster = Broadcaster(message_store)

        yield

        logger.info("emporium.shutdown", connections=len(app.state.broadcaster))
        await app.state.broadcaster.close_all()
        await message_store.close()

    return lifespan


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    """Unknown routes get a JSON error instead of the default page."""
    if exc.status_code != 404:
        return JSONResponse(
            {"detail": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )
    logger.warning("http.route_not_found", path=request.url.path, method=request.method)
    return JSONResponse(
        {
            "error": -2,
            "description": (
                f"route {request.url.path} method {request.method} not implemented"
            ),
        },
        status_code=404,
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[MessageStore] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or config.settings
    app = FastAPI(
        title="Emporium",
        description="Storefront backend with a realtime chat channel",
        version=__version__,
        lifespan=build_lifespan(settings, store),
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → GZip → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(StarletteHTTPException, not_found_handler)

    app.include_router(api_router)
    app.include_router(ws_router)

    return app
