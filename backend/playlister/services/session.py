"""
playlister.services.session
~~~~~~~~~~~~~~~~~~~~~~~~~~~

Room session protocol: how connections join and leave rooms, how host
authority moves, how the queue changes and how playback state is relayed.

Every transition runs under the room's lock for the mutation and the
emissions that follow it, so all members of a room see updates in the order
they were applied. Nothing here awaits the provider.

Dead transports are detected by engine.io's ping/pong, which ends in the
same ``disconnect`` as a clean close.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Optional, Protocol

from playlister.core.errors import (
    ConnectionClosed,
    MalformedEvent,
    NotAMember,
    PlaylisterError,
    RoomNotFound,
    Unauthorized,
)
from playlister.core.logging import get_logger
from playlister.models.room import QueuedTrack, Room
from playlister.schemas import events as ev
from playlister.services.room import Removal, RoomRegistry

logger = get_logger(__name__)


class Emitter(Protocol):
    """The subset of ``socketio.AsyncServer`` the protocol talks to."""

    async def emit(self, event: str, data: Any = None, to: Optional[str] = None,
                   room: Optional[str] = None, skip_sid: Optional[str] = None, **kwargs: Any) -> None: ...

    async def enter_room(self, sid: str, room: str, **kwargs: Any) -> None: ...

    async def leave_room(self, sid: str, room: str, **kwargs: Any) -> None: ...


class RoomSessionProtocol:
    def __init__(
        self,
        registry: RoomRegistry,
        emitter: Emitter,
        *,
        promote_first_joiner: bool = True,
        default_display_name: str = "Guest",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.emitter = emitter
        self.promote_first_joiner = promote_first_joiner
        self.default_display_name = default_display_name
        self.clock = clock

        # Events still being handled per connection, and connections that
        # closed while some of those were waiting on a room lock
        self._inflight: dict[str, int] = {}
        self._departed: set[str] = set()

        self._handlers: dict[type, Callable[[str, Any], Any]] = {
            ev.CreateRoom: self.create_room,
            ev.JoinRoom: self.join_room,
            ev.LeaveRoom: self.leave_room,
            ev.AddToQueue: self.add_to_queue,
            ev.RemoveFromQueue: self.remove_from_queue,
            ev.SetHostDevice: self.set_host_device,
            ev.ReportPlayback: self.report_playback,
        }

    # Entry point

    async def handle(self, sid: str, event: str, data: Any = None) -> dict:
        """Validate and apply one inbound event. Returns the ack payload.

        Protocol errors go back to ``sid`` only, as an ``error`` event.
        """
        self._inflight[sid] = self._inflight.get(sid, 0) + 1
        try:
            return await self._dispatch(sid, event, data)
        finally:
            self._settle(sid)

    async def _dispatch(self, sid: str, event: str, data: Any) -> dict:
        try:
            command = ev.parse_event(event, data)
        except MalformedEvent as exc:
            logger.warning(f"Dropping malformed {event} from {sid}: {exc.message}")
            await self._send_error(sid, exc)
            return {"ok": False, "error": exc.code}

        try:
            return await self._handlers[type(command)](sid, command)
        except PlaylisterError as exc:
            logger.info(f"{event} from {sid} rejected: {exc.message}")
            await self._send_error(sid, exc)
            return {"ok": False, "error": exc.code}

    # Transitions

    async def create_room(self, sid: str, command: ev.CreateRoom) -> dict:
        self._ensure_connected(sid)
        room = self.registry.create(command.room_code)
        async with room.lock:
            name = command.display_name or self.default_display_name
            self.registry.add_member(room, sid, name, is_host=True)
            logger.info(f"{name} created room {room.code} as host")

            await self.emitter.enter_room(sid, room.code)
            await self._send_snapshot(sid, room, role="host")
        return {"ok": True, "roomCode": room.code, "role": "host"}

    async def join_room(self, sid: str, command: ev.JoinRoom) -> dict:
        name = command.display_name or self.default_display_name
        while True:
            room, created = self.registry.get_or_create(command.room_code)
            async with room.lock:
                if not self.registry.is_live(room):
                    # Emptied and dropped while this join waited; start over
                    continue
                self._ensure_connected(sid)

                existing = room.member(sid)
                promote = existing is None and not room.members and self.promote_first_joiner
                member = self.registry.add_member(room, sid, name, is_host=promote)
                role = "host" if member.is_host else "guest"
                logger.info(f"{name} joined room {room.code} as {role}{' (new room)' if created else ''}")

                await self.emitter.enter_room(sid, room.code)
                # users_update goes out to the whole room below, caller included
                await self._send_snapshot(sid, room, role=role, include_members=False)
                if room.current_playback is not None:
                    await self.emitter.emit(ev.PLAYBACK_UPDATE, room.playback_payload(), to=sid)
                await self._broadcast_members(room)
                return {"ok": True, "roomCode": room.code, "role": role}

    async def leave_room(self, sid: str, command: ev.LeaveRoom) -> dict:
        room = self.registry.require(command.room_code)
        if room.member(sid) is None:
            raise NotAMember()
        await self._remove(sid, room.code)
        await self.emitter.leave_room(sid, room.code)
        return {"ok": True, "roomCode": room.code}

    async def add_to_queue(self, sid: str, command: ev.AddToQueue) -> dict:
        room = self.registry.require(command.room_code)
        async with room.lock:
            room = self._live(room)
            member = room.member(sid)
            payload = command.track
            added_by = member.display_name if member else (payload.added_by or self.default_display_name)

            track = room.enqueue(QueuedTrack(
                title=payload.title,
                artist=payload.artist or "Unknown Artist",
                uri=payload.uri,
                preview_url=payload.preview_url,
                artwork_url=payload.artwork_url,
                duration_ms=payload.duration_ms,
                added_by=added_by,
                added_at=self.clock(),
            ))
            logger.info(f"{added_by} queued '{track.title}' in {room.code} ({len(room.queue)} in queue)")
            await self._broadcast_queue(room)
        return {"ok": True, "trackId": track.id}

    async def remove_from_queue(self, sid: str, command: ev.RemoveFromQueue) -> dict:
        room = self.registry.require(command.room_code)
        async with room.lock:
            room = self._live(room)
            if not room.is_host(sid):
                raise Unauthorized("Only the host can remove tracks")

            track = room.dequeue(index=command.index, track_id=command.track_id)
            logger.info(f"Host removed '{track.title}' from {room.code}")
            await self._broadcast_queue(room)
        return {"ok": True, "trackId": track.id}

    async def set_host_device(self, sid: str, command: ev.SetHostDevice) -> dict:
        room = self.registry.require(command.room_code)
        async with room.lock:
            room = self._live(room)
            member = room.member(sid)
            if member is None:
                raise NotAMember()

            demoted = room.assign_host(sid, device_id=command.device_id)
            logger.info(f"{member.display_name} is host of {room.code} on device {command.device_id}")
            await self.emitter.emit(ev.HOST_ASSIGNED, {"isHost": True}, to=sid)
            for old in demoted:
                await self.emitter.emit(ev.HOST_ASSIGNED, {"isHost": False}, to=old.connection_id)
            await self._broadcast_members(room)
        return {"ok": True, "isHost": True}

    async def report_playback(self, sid: str, command: ev.ReportPlayback) -> dict:
        room = self.registry.require(command.room_code)
        async with room.lock:
            room = self._live(room)
            room.current_playback = command.playback.model_copy(update={"updated_at": self.clock()})
            # The sender already has this state locally
            await self.emitter.emit(
                ev.PLAYBACK_UPDATE, room.playback_payload(), room=room.code, skip_sid=sid,
            )
        return {"ok": True}

    async def disconnect(self, sid: str) -> None:
        if sid in self._inflight:
            self._departed.add(sid)
        codes = self.registry.rooms_for(sid)
        if codes:
            logger.info(f"Connection {sid} lost, leaving {', '.join(sorted(codes))}")
        for code in codes:
            await self._remove(sid, code)

    # Helpers

    def _ensure_connected(self, sid: str) -> None:
        if sid in self._departed:
            raise ConnectionClosed()

    def _settle(self, sid: str) -> None:
        remaining = self._inflight.get(sid, 1) - 1
        if remaining > 0:
            self._inflight[sid] = remaining
            return
        self._inflight.pop(sid, None)
        self._departed.discard(sid)

    def _live(self, room: Room) -> Room:
        # The room may have emptied while this transition waited for its lock
        if not self.registry.is_live(room):
            raise RoomNotFound(f"Room {room.code} not found")
        return room

    async def _remove(self, sid: str, code: str) -> Optional[Removal]:
        room = self.registry.get(code)
        if room is None:
            return self.registry.remove_member(code, sid)

        async with room.lock:
            removal = self.registry.remove_member(code, sid)
            if removal is None:
                return None
            logger.info(f"{removal.member.display_name} left room {removal.room.code}")
            if removal.room_deleted:
                return removal

            if removal.new_host:
                await self.emitter.emit(ev.HOST_ASSIGNED, {"isHost": True}, to=removal.new_host.connection_id)
            await self._broadcast_members(removal.room)
        return removal

    async def _send_snapshot(self, sid: str, room: Room, role: str, include_members: bool = True) -> None:
        await self.emitter.emit(ev.JOINED_ROOM, {"status": "success", "role": role, "roomCode": room.code}, to=sid)
        await self.emitter.emit(ev.QUEUE_UPDATE, {"queue": room.queue_payload()}, to=sid)
        if include_members:
            await self.emitter.emit(ev.USERS_UPDATE, {"members": room.users_payload()}, to=sid)

    async def _broadcast_queue(self, room: Room) -> None:
        await self.emitter.emit(ev.QUEUE_UPDATE, {"queue": room.queue_payload()}, room=room.code)

    async def _broadcast_members(self, room: Room) -> None:
        await self.emitter.emit(ev.USERS_UPDATE, {"members": room.users_payload()}, room=room.code)

    async def _send_error(self, sid: str, error: PlaylisterError) -> None:
        await self.emitter.emit(ev.ERROR, error.to_payload(), to=sid)
