from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from coordinator.messaging.router import MessageRouter
from coordinator.server.network import lan_interfaces, log_lan_addresses
from coordinator.server.settings import CoordinatorSettings
from coordinator.server.websocket import websocket_endpoint
from coordinator.session.manager import SessionManager
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    settings: CoordinatorSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
            "rooms": session_manager.room_count,
            "connections": session_manager.connection_count,
            "bound_sessions": session_manager.bound_count,
            "max_players": settings.max_players,
        },
    )


async def list_rooms(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    rooms = session_manager.list_public_rooms()
    return JSONResponse({"success": True, "rooms": [room.model_dump(mode="json", by_alias=True) for room in rooms]})


async def network_interfaces(_request: Request) -> JSONResponse:
    try:
        interfaces = lan_interfaces()
    except OSError as e:
        logger.warning("network interface lookup failed", error=str(e))
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)
    return JSONResponse({"success": True, "interfaces": [interface.model_dump() for interface in interfaces]})


def create_app(
    settings: CoordinatorSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = CoordinatorSettings()

    if session_manager is None:
        session_manager = SessionManager.from_settings(settings)

    if message_router is None:
        message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        session_manager.start()
        try:
            yield
        finally:
            await session_manager.stop()

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/api/rooms", list_rooms, methods=["GET"]),
        Route("/rooms", list_rooms, methods=["GET"]),
        Route("/api/network-interfaces", network_interfaces, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("coordinator ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = CoordinatorSettings()
    setup_logging(log_dir=_settings.log_dir, name="coordinator")
    log_lan_addresses()
    return create_app(settings=_settings)
