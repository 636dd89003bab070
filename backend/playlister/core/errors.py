"""
playlister.core.errors
~~~~~~~~~~~~~~~~~~~~~~

Error taxonomy shared by the HTTP routes and the socket protocol. HTTP turns
these into ``{"error": message}`` with ``status_code``; the socket protocol
sends ``{"code": code, "message": message}`` to the offending connection.
"""
from __future__ import annotations

from typing import Optional


class PlaylisterError(Exception):
    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"code": self.code, "message": self.message}


# Authorization flow

class InvalidState(PlaylisterError):
    code = "invalid_state"
    status_code = 400
    default_message = "Invalid state parameter"


class UpstreamExchangeFailed(PlaylisterError):
    code = "upstream_exchange_failed"
    status_code = 400
    default_message = "Failed to exchange token with provider"


class MissingBearerToken(PlaylisterError):
    code = "missing_token"
    status_code = 401
    default_message = "Missing bearer token"


# Provider calls

class UpstreamTimeout(PlaylisterError):
    code = "upstream_timeout"
    status_code = 504
    default_message = "Provider did not respond in time"


class UpstreamError(PlaylisterError):
    code = "upstream_error"
    default_message = "Provider request failed"

    def __init__(self, status_code: Optional[int] = None, message: Optional[str] = None) -> None:
        self.status_code = status_code or 500
        super().__init__(message)


# Room protocol

class RoomNotFound(PlaylisterError):
    code = "room_not_found"
    status_code = 404
    default_message = "Room not found"


class RoomAlreadyExists(PlaylisterError):
    code = "room_exists"
    status_code = 409
    default_message = "Room already exists"


class RoomCodeUnavailable(PlaylisterError):
    code = "room_code_unavailable"
    status_code = 503
    default_message = "Could not allocate a free room code"


class Unauthorized(PlaylisterError):
    code = "unauthorized"
    status_code = 403
    default_message = "Only the host can do that"


class NotAMember(PlaylisterError):
    code = "not_a_member"
    status_code = 403
    default_message = "Join the room first"


class ConnectionClosed(PlaylisterError):
    code = "connection_closed"
    status_code = 410
    default_message = "Connection already closed"


class TrackNotFound(PlaylisterError):
    code = "track_not_found"
    status_code = 404
    default_message = "No such track in the queue"


class MalformedEvent(PlaylisterError):
    code = "malformed_event"
    status_code = 400
    default_message = "Malformed event payload"
