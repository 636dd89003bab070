"""
playlister.api.rooms
~~~~~~~~~~~~~~~~~~~~

Room lookup over HTTP, mounted under ``/api``.
"""
from fastapi import APIRouter, Depends

from playlister.api.deps import get_registry
from playlister.services.room import RoomRegistry

router: APIRouter = APIRouter()


@router.post("/rooms")
async def create_room(registry: RoomRegistry = Depends(get_registry)) -> dict:
    # Only a code is handed out; the room itself appears on the first join_room,
    # so the registry never holds a room without members.
    return {"roomCode": registry.reserve_code()}


@router.get("/rooms/{code}")
async def room_info(code: str, registry: RoomRegistry = Depends(get_registry)) -> dict:
    room = registry.get(code)
    if not room:
        return {"exists": False}
    return {
        "exists": True,
        "roomCode": room.code,
        "queue": room.queue_payload(),
        "users": room.users_payload(),
        "userCount": len(room.members),
        "playback": room.playback_payload(),
    }
