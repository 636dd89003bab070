"""
playlister.models.room
~~~~~~~~~~~~~~~~~~~~~~

Room state: members in join order, the FIFO queue and the last playback
snapshot. Payload helpers serialise in the camelCase the clients read.
"""
import asyncio
import time
import uuid
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr

from playlister.core.errors import TrackNotFound


class Member(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    connection_id: str = Field(serialization_alias="id")
    display_name: str = Field(serialization_alias="name")
    is_host: bool = Field(default=False, serialization_alias="isHost")
    joined_at: float = Field(default_factory=time.time, serialization_alias="joinedAt")


class QueuedTrack(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    artist: str = "Unknown Artist"
    uri: Optional[str] = None  # Provider uri, e.g. spotify:track:...
    preview_url: Optional[str] = Field(default=None, serialization_alias="previewUrl")
    artwork_url: Optional[str] = Field(default=None, serialization_alias="artworkUrl")
    duration_ms: Optional[int] = Field(default=None, serialization_alias="durationMs")
    added_by: str = Field(serialization_alias="addedBy")
    added_at: float = Field(default_factory=time.time, serialization_alias="addedAt")


class PlaybackTrack(BaseModel):
    # Provider track objects (album, artists, ...) are relayed untouched
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("title", "name"),
        serialization_alias="name",
    )
    artist: Optional[str] = None
    uri: Optional[str] = None
    artwork_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("artworkUrl", "artwork_url", "image"),
        serialization_alias="artworkUrl",
    )


class PlaybackSnapshot(BaseModel):
    """Last playback state reported by a member's player."""

    model_config = ConfigDict(populate_by_name=True)

    track: Optional[PlaybackTrack] = Field(
        default=None,
        validation_alias=AliasChoices("track", "currentTrack"),
        serialization_alias="currentTrack",
    )
    position_ms: int = Field(
        default=0, ge=0,
        validation_alias=AliasChoices("positionMs", "position_ms", "position"),
        serialization_alias="positionMs",
    )
    duration_ms: Optional[int] = Field(
        default=None, ge=0,
        validation_alias=AliasChoices("durationMs", "duration_ms", "duration"),
        serialization_alias="durationMs",
    )
    is_playing: bool = Field(
        default=False,
        validation_alias=AliasChoices("isPlaying", "is_playing"),
        serialization_alias="isPlaying",
    )
    updated_at: Optional[float] = Field(default=None, serialization_alias="updatedAt")


class Room(BaseModel):
    code: str
    members: List[Member] = []  # Join order, oldest first
    queue: List[QueuedTrack] = []
    host_connection_id: Optional[str] = None
    host_device_id: Optional[str] = None
    current_playback: Optional[PlaybackSnapshot] = None
    created_at: float = Field(default_factory=time.time)

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    @property
    def host(self) -> Optional[Member]:
        return next((m for m in self.members if m.is_host), None)

    def member(self, connection_id: str) -> Optional[Member]:
        return next((m for m in self.members if m.connection_id == connection_id), None)

    def is_host(self, connection_id: str) -> bool:
        member = self.member(connection_id)
        return member is not None and member.is_host

    def add_member(self, connection_id: str, display_name: str, is_host: bool = False) -> Member:
        existing = self.member(connection_id)
        if existing:
            # Same connection joining again: refresh the name, keep its slot
            existing.display_name = display_name
            return existing

        member = Member(connection_id=connection_id, display_name=display_name)
        self.members.append(member)
        if is_host:
            self.assign_host(connection_id)
        return member

    def remove_member(self, connection_id: str) -> tuple[Optional[Member], Optional[Member]]:
        """Drop a member. Returns ``(removed, new_host)``; ``new_host`` is set
        only when the host left and someone remains to take over."""
        removed = self.member(connection_id)
        if removed is None:
            return None, None

        self.members = [m for m in self.members if m.connection_id != connection_id]

        new_host = None
        if removed.is_host or self.host_connection_id == connection_id:
            self.host_connection_id = None
            self.host_device_id = None
            if self.members:
                new_host = self.members[0]
                self.assign_host(new_host.connection_id)
        return removed, new_host

    def assign_host(self, connection_id: str, device_id: Optional[str] = None) -> List[Member]:
        """Make ``connection_id`` the only host. Returns the members demoted."""
        demoted = []
        for m in self.members:
            if m.connection_id == connection_id:
                m.is_host = True
            elif m.is_host:
                m.is_host = False
                demoted.append(m)

        if self.host_connection_id != connection_id:
            self.host_device_id = None
        self.host_connection_id = connection_id
        if device_id is not None:
            self.host_device_id = device_id
        return demoted

    def enqueue(self, track: QueuedTrack) -> QueuedTrack:
        self.queue.append(track)
        return track

    def dequeue(self, index: Optional[int] = None, track_id: Optional[str] = None) -> QueuedTrack:
        if track_id is not None:
            for i, t in enumerate(self.queue):
                if t.id == track_id:
                    return self.queue.pop(i)
            raise TrackNotFound(f"No track with id {track_id}")

        if index is None or not 0 <= index < len(self.queue):
            raise TrackNotFound(f"No track at index {index}")
        return self.queue.pop(index)

    def users_payload(self) -> list:
        return [m.model_dump(by_alias=True) for m in self.members]

    def queue_payload(self) -> list:
        return [t.model_dump(by_alias=True) for t in self.queue]

    def playback_payload(self) -> Optional[dict]:
        if self.current_playback is None:
            return None
        return self.current_playback.model_dump(by_alias=True)
