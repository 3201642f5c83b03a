from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from . import __version__
from .cleanup import cancel_cleanup
from .config import Settings, settings as default_settings
from .hub import ConnectionHub
from .registry import RoomRegistry
from .routers import rooms as rooms_router
from .routers import websockets as ws_router

logger = logging.getLogger(__name__)


CLIENT_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class ClientFiles(StaticFiles):
    """Browser client assets, always revalidated so a restarted table serves fresh code."""

    def file_response(self, *args, **kwargs) -> Response:
        response = super().file_response(*args, **kwargs)
        response.headers.update(CLIENT_HEADERS)
        return response


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None, registry: Optional[RoomRegistry] = None) -> FastAPI:
    """Build the application.

    Tests pass their own *settings* (short grace periods) or a prepared
    *registry*; production uses the environment-driven defaults.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(settings.log_level)
        logger.info("Dice server starting (grace period %ss)", settings.cleanup_grace_seconds)
        yield
        for room in app.state.registry:
            cancel_cleanup(room)
        logger.info("Dice server shutting down")

    app = FastAPI(title="Candela Dice", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry or RoomRegistry(
        history_limit=settings.history_limit,
        cleanup_grace_seconds=settings.cleanup_grace_seconds,
    )
    app.state.hub = ConnectionHub()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValueError)
    async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "rooms": len(app.state.registry)}

    app.include_router(rooms_router.router)
    app.include_router(ws_router.router)

    # Mount the browser client last so it never shadows the API routes
    if settings.static_dir and os.path.isdir(settings.static_dir):
        app.mount("/", ClientFiles(directory=settings.static_dir, html=True), name="client")
        logger.info("Serving client from %s", settings.static_dir)

    return app


app = create_app()

__all__ = ["app", "create_app", "configure_logging", "ClientFiles", "CLIENT_HEADERS"]
