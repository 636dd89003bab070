"""
playlister.schemas.events
~~~~~~~~~~~~~~~~~~~~~~~~~

Socket.IO event contract. Inbound payloads are validated into one
discriminated union keyed by the event name before they touch room state.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from playlister.core.errors import MalformedEvent
from playlister.models.room import PlaybackSnapshot

# Outbound event names
JOINED_ROOM = "joined_room"
QUEUE_UPDATE = "queue_update"
USERS_UPDATE = "users_update"
HOST_ASSIGNED = "host_assigned"
PLAYBACK_UPDATE = "playback_update"
ERROR = "error"

_ROOM_CODE_PATTERN = r"^[A-Za-z0-9]+$"
_ROOM_CODE_ALIASES = AliasChoices("roomCode", "room_code", "code")


def _display_name_field() -> Any:
    return Field(
        default=None,
        max_length=64,
        validation_alias=AliasChoices("userName", "displayName", "hostDisplayName", "name"),
    )


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _RoomEvent(_Event):
    room_code: str = Field(
        min_length=1, max_length=16, pattern=_ROOM_CODE_PATTERN, validation_alias=_ROOM_CODE_ALIASES,
    )

    @field_validator("room_code")
    @classmethod
    def normalise_code(cls, v: str) -> str:
        return v.upper()


class TrackPayload(_Event):
    """A track as picked by a client from search results."""

    title: str = Field(min_length=1, validation_alias=AliasChoices("title", "name"))
    artist: Optional[str] = Field(default=None, validation_alias=AliasChoices("artist", "primaryArtist"))
    uri: Optional[str] = Field(default=None, validation_alias=AliasChoices("uri", "providerUri"))
    preview_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("previewUrl", "preview_url"))
    artwork_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("artworkUrl", "artwork_url", "image"),
    )
    duration_ms: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("durationMs", "duration_ms"),
    )
    added_by: Optional[str] = Field(default=None, validation_alias=AliasChoices("addedBy", "added_by"))


class CreateRoom(_Event):
    event: Literal["create_room"]
    display_name: Optional[str] = _display_name_field()
    room_code: Optional[str] = Field(
        default=None, min_length=1, max_length=16, pattern=_ROOM_CODE_PATTERN, validation_alias=_ROOM_CODE_ALIASES,
    )

    @field_validator("room_code")
    @classmethod
    def normalise_code(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class JoinRoom(_RoomEvent):
    event: Literal["join_room"]
    display_name: Optional[str] = _display_name_field()


class LeaveRoom(_RoomEvent):
    event: Literal["leave_room"]


class AddToQueue(_RoomEvent):
    event: Literal["add_to_queue"]
    track: TrackPayload


class RemoveFromQueue(_RoomEvent):
    event: Literal["remove_from_queue"]
    index: Optional[int] = Field(default=None, ge=0)
    track_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("trackId", "track_id"))

    @model_validator(mode="after")
    def needs_target(self) -> "RemoveFromQueue":
        if self.index is None and self.track_id is None:
            raise ValueError("index or trackId is required")
        return self


class SetHostDevice(_RoomEvent):
    event: Literal["set_host_device"]
    device_id: str = Field(min_length=1, validation_alias=AliasChoices("deviceId", "device_id"))


class ReportPlayback(_RoomEvent):
    event: Literal["report_playback"]
    playback: PlaybackSnapshot = Field(
        validation_alias=AliasChoices("playbackSnapshot", "playback", "state"),
    )


InboundEvent = Annotated[
    Union[
        CreateRoom,
        JoinRoom,
        LeaveRoom,
        AddToQueue,
        RemoveFromQueue,
        SetHostDevice,
        ReportPlayback,
    ],
    Field(discriminator="event"),
]

INBOUND_EVENTS: tuple[str, ...] = (
    "create_room",
    "join_room",
    "leave_room",
    "add_to_queue",
    "remove_from_queue",
    "set_host_device",
    "report_playback",
)

_inbound_adapter: TypeAdapter = TypeAdapter(InboundEvent)


def parse_event(event: str, data: Any) -> BaseModel:
    """Validate a raw socket payload for ``event``.

    Raises:
        MalformedEvent: unknown event, non-object payload or failed validation.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedEvent(f"{event} expects an object payload")
    try:
        return _inbound_adapter.validate_python({**data, "event": event})
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) or err["msg"] for err in exc.errors())
        raise MalformedEvent(f"Invalid {event} payload: {fields}") from exc
