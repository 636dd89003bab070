"""
tests.conftest
~~~~~~~~~~~~~~

Shared fixtures: an isolated registry and protocol per test, and a recording
stand-in for the Socket.IO server so room fan-out can be asserted without a
network.
"""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

os.environ.setdefault("ENVIRONMENT", "test")

from playlister.services.room import RoomRegistry  # noqa: E402
from playlister.services.session import RoomSessionProtocol  # noqa: E402


@dataclass
class Emission:
    event: str
    data: Any
    to: Optional[str] = None
    room: Optional[str] = None
    skip_sid: Optional[str] = None
    recipients: frozenset = frozenset()


@dataclass
class FakeEmitter:
    """Mimics ``socketio.AsyncServer`` room bookkeeping and records deliveries."""

    emissions: list[Emission] = field(default_factory=list)
    rooms: dict[str, set[str]] = field(default_factory=dict)
    # Hand control back to the loop on every emit, like a real transport write
    yielding: bool = False

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None, **kwargs):
        if self.yielding:
            await asyncio.sleep(0)
        if to is not None:
            recipients = {to}
        else:
            recipients = set(self.rooms.get(room, set())) - {skip_sid}
        self.emissions.append(Emission(event, data, to=to, room=room, skip_sid=skip_sid, recipients=frozenset(recipients)))

    async def enter_room(self, sid, room, **kwargs):
        self.rooms.setdefault(room, set()).add(sid)

    async def leave_room(self, sid, room, **kwargs):
        self.rooms.get(room, set()).discard(sid)

    def received(self, sid: str, event: Optional[str] = None) -> list[Any]:
        """Payloads ``sid`` would have received, in order."""
        return [
            e.data for e in self.emissions
            if sid in e.recipients and (event is None or e.event == event)
        ]

    def clear(self) -> None:
        self.emissions.clear()


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def emitter() -> FakeEmitter:
    return FakeEmitter()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry() -> RoomRegistry:
    return RoomRegistry(code_length=6, max_attempts=5)


@pytest.fixture()
def protocol(registry: RoomRegistry, emitter: FakeEmitter, clock: FakeClock) -> RoomSessionProtocol:
    return RoomSessionProtocol(registry, emitter, clock=clock)
