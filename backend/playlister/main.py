"""
playlister.main
~~~~~~~~~~~~~~~

Application entry point. ``socket_app`` serves the HTTP routes and the
Socket.IO channel from one ASGI app.
"""
from contextlib import asynccontextmanager
from typing import Optional

import socketio
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from playlister.api import auth, proxy, rooms
from playlister.api.sockets import register_socket_handlers
from playlister.core.config import Settings, get_settings
from playlister.core.errors import PlaylisterError
from playlister.core.logging import get_logger, setup_logging
from playlister.services.auth import TokenExchangeGateway
from playlister.services.provider import ProviderProxy
from playlister.services.room import RoomRegistry
from playlister.services.session import RoomSessionProtocol

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(f"{settings.PROJECT_NAME} started | env={settings.ENVIRONMENT}")
    yield
    logger.info(f"{settings.PROJECT_NAME} stopped ({len(app.state.registry)} rooms dropped)")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the HTTP app with its own registry, protocol and Socket.IO server.

    The Socket.IO server is on ``app.state.sio``; wrap both with
    ``socketio.ASGIApp`` to serve them together.
    """
    settings = settings or get_settings()
    origins = settings.cors_origins

    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if origins == ["*"] else origins,
        ping_interval=settings.SOCKET_PING_INTERVAL_SECONDS,
        ping_timeout=settings.SOCKET_PING_TIMEOUT_SECONDS,
    )
    registry = RoomRegistry(
        code_length=settings.ROOM_CODE_LENGTH,
        max_attempts=settings.ROOM_CODE_MAX_ATTEMPTS,
    )
    protocol = RoomSessionProtocol(
        registry,
        sio,
        promote_first_joiner=settings.PROMOTE_FIRST_JOINER,
        default_display_name=settings.DEFAULT_DISPLAY_NAME,
    )
    register_socket_handlers(sio, protocol)

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, debug=settings.debug, lifespan=lifespan)
    app.state.settings = settings
    app.state.sio = sio
    app.state.registry = registry
    app.state.protocol = protocol
    app.state.gateway = TokenExchangeGateway(
        client_id=settings.SPOTIFY_CLIENT_ID,
        redirect_uri=settings.SPOTIFY_REDIRECT_URL,
        scopes=settings.SPOTIFY_SCOPES,
        authorize_url=settings.SPOTIFY_AUTHORIZE_URL,
        token_url=settings.SPOTIFY_TOKEN_URL,
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        state_ttl=settings.PKCE_STATE_TTL_SECONDS,
    )
    app.state.proxy = ProviderProxy(settings.SPOTIFY_API_BASE_URL, timeout=settings.UPSTREAM_TIMEOUT_SECONDS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, tags=["Auth"])
    app.include_router(proxy.router, prefix="/api", tags=["Provider"])
    app.include_router(rooms.router, prefix="/api", tags=["Rooms"])

    @app.exception_handler(PlaylisterError)
    async def playlister_error_handler(request: Request, exc: PlaylisterError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error: {request.method} {request.url.path} -> {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health", tags=["System"])
    async def health() -> dict:
        return {
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "rooms": len(registry),
        }

    return app


_settings = get_settings()
setup_logging(_settings.effective_log_level)

app = create_app(_settings)
socket_app = socketio.ASGIApp(app.state.sio, app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "playlister.main:socket_app",
        host=_settings.HOST,
        port=_settings.PORT,
        reload=_settings.debug,
        log_level=_settings.effective_log_level.lower(),
    )
