from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from relay.server.settings import RelayServerSettings
from relay.server.websocket import websocket_endpoint
from relay.session.heartbeat import LivenessMonitor
from relay.session.registry import RoomRegistry
from shared.build_info import APP_VERSION, GIT_COMMIT, SERVER_NAME
from shared.logging import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request

logger = structlog.get_logger()


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    """Report room and player counts.

    CORSMiddleware only decorates requests that carry an Origin header, so the
    wildcard Access-Control-Allow-Origin is set here as well for plain
    requests from browser-hosted status pages.
    """
    registry: RoomRegistry = request.app.state.registry
    settings: RelayServerSettings = request.app.state.settings
    snapshot = registry.snapshot()
    headers = {"Access-Control-Allow-Origin": "*"} if "*" in settings.cors_origins else None
    return JSONResponse(
        {
            "server": SERVER_NAME,
            "version": APP_VERSION,
            "status": "online",
            "rooms": snapshot.room_count,
            "players": snapshot.player_count,
        },
        headers=headers,
    )


def create_app(
    settings: RelayServerSettings | None = None,
    registry: RoomRegistry | None = None,
    liveness: LivenessMonitor | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = RelayServerSettings()

    if registry is None:
        registry = RoomRegistry()

    if liveness is None:
        liveness = LivenessMonitor(interval=settings.heartbeat_interval, send_timeout=settings.send_timeout)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        liveness.start()
        logger.info(
            "relay server ready",
            host=settings.host,
            port=settings.port,
            max_players=settings.max_players,
            heartbeat_interval=settings.heartbeat_interval,
        )
        try:
            yield
        finally:
            await liveness.stop()
            logger.info("relay server stopped")

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/", status, methods=["GET"]),
        WebSocketRoute("/", websocket_endpoint),
        # The relay answers on any path, matching clients that append their own.
        Route("/{path:path}", status, methods=["GET"]),
        WebSocketRoute("/{path:path}", websocket_endpoint),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.liveness = liveness
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = RelayServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
