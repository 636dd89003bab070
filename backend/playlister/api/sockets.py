"""
playlister.api.sockets
~~~~~~~~~~~~~~~~~~~~~~

Binds Socket.IO events to the room session protocol. Handler return values
travel back to the client as acks.
"""
from __future__ import annotations

from typing import Any

from playlister.core.errors import PlaylisterError
from playlister.core.logging import get_logger
from playlister.schemas.events import ERROR, INBOUND_EVENTS
from playlister.services.session import RoomSessionProtocol

logger = get_logger(__name__)


def register_socket_handlers(sio: Any, protocol: RoomSessionProtocol) -> None:
    async def connect(sid, environ, auth=None):
        logger.info(f"Client {sid} connected")

    async def disconnect(sid, reason=None):
        logger.info(f"Client {sid} disconnected ({reason or 'closed'})")
        try:
            await protocol.disconnect(sid)
        except Exception as e:
            logger.error(f"Error in disconnect: {e}", exc_info=True)

    sio.on("connect", handler=connect)
    sio.on("disconnect", handler=disconnect)
    for event in INBOUND_EVENTS:
        sio.on(event, handler=_event_handler(sio, protocol, event))


def _event_handler(sio: Any, protocol: RoomSessionProtocol, event: str):
    async def handler(sid, data=None):
        try:
            return await protocol.handle(sid, event, data)
        except Exception as e:
            logger.error(f"Error in {event}: {e}", exc_info=True)
            failure = PlaylisterError()
            await sio.emit(ERROR, failure.to_payload(), to=sid)
            return {"ok": False, "error": failure.code}

    handler.__name__ = event
    return handler
