"""
playlister.services.room
~~~~~~~~~~~~~~~~~~~~~~~~

In-memory room registry: room codes, room lifetime and the index of which
rooms each connection belongs to.
"""
import secrets
import string
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Set

from playlister.core.errors import RoomAlreadyExists, RoomCodeUnavailable, RoomNotFound
from playlister.core.logging import get_logger
from playlister.models.room import Member, Room

logger = get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(code: str) -> str:
    return code.strip().upper()


@dataclass
class Removal:
    room: Room
    member: Member
    new_host: Optional[Member]
    room_deleted: bool


class RoomRegistry:
    """In-memory room store for one process.

    Rooms exist only while they have members: ``remove_member`` drops a room
    the moment its last member goes.
    """

    def __init__(self, code_length: int = 6, max_attempts: int = 5):
        self.code_length = code_length
        self.max_attempts = max_attempts
        self._rooms: Dict[str, Room] = {}
        # connection id -> codes of rooms it is a member of
        self._memberships: Dict[str, Set[str]] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: str) -> bool:
        return normalize_code(code) in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def codes(self) -> list[str]:
        return list(self._rooms)

    def generate_code(self) -> str:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(self.code_length))

    def reserve_code(self) -> str:
        """A code that no live room uses. Nothing is stored."""
        for _ in range(self.max_attempts):
            code = self.generate_code()
            if code not in self._rooms:
                return code
            logger.warning(f"Room code collision on {code}, regenerating")
        raise RoomCodeUnavailable()

    def create(self, code: Optional[str] = None) -> Room:
        if code is None:
            code = self.reserve_code()
        else:
            code = normalize_code(code)
            if code in self._rooms:
                raise RoomAlreadyExists(f"Room {code} already exists")

        room = Room(code=code)
        self._rooms[code] = room
        logger.info(f"Room {code} created ({len(self._rooms)} live)")
        return room

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(normalize_code(code))

    def require(self, code: str) -> Room:
        room = self.get(code)
        if room is None:
            raise RoomNotFound(f"Room {normalize_code(code)} not found")
        return room

    def get_or_create(self, code: str) -> tuple[Room, bool]:
        room = self.get(code)
        if room is not None:
            return room, False
        return self.create(code), True

    def is_live(self, room: Room) -> bool:
        return self._rooms.get(room.code) is room

    def delete(self, code: str) -> Optional[Room]:
        room = self._rooms.pop(normalize_code(code), None)
        if room is not None:
            for m in room.members:
                self._forget(m.connection_id, room.code)
            logger.info(f"Room {room.code} deleted ({len(self._rooms)} live)")
        return room

    def add_member(self, room: Room, connection_id: str, display_name: str, is_host: bool = False) -> Member:
        member = room.add_member(connection_id, display_name, is_host=is_host)
        self._memberships.setdefault(connection_id, set()).add(room.code)
        return member

    def remove_member(self, code: str, connection_id: str) -> Optional[Removal]:
        room = self.get(code)
        if room is None:
            self._forget(connection_id, normalize_code(code))
            return None

        removed, new_host = room.remove_member(connection_id)
        self._forget(connection_id, room.code)
        if removed is None:
            return None

        deleted = not room.members
        if deleted:
            self.delete(room.code)
        elif new_host:
            logger.info(f"Host of {room.code} passed to {new_host.display_name} ({new_host.connection_id})")
        return Removal(room=room, member=removed, new_host=new_host, room_deleted=deleted)

    def rooms_for(self, connection_id: str) -> Set[str]:
        return set(self._memberships.get(connection_id, ()))

    def _forget(self, connection_id: str, code: str) -> None:
        codes = self._memberships.get(connection_id)
        if codes is None:
            return
        codes.discard(code)
        if not codes:
            del self._memberships[connection_id]
