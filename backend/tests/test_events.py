"""
tests.test_events
~~~~~~~~~~~~~~~~~

Validation of inbound socket payloads.
"""
from __future__ import annotations

import pytest

from playlister.core.errors import MalformedEvent
from playlister.schemas import events as ev


def test_join_room_accepts_client_aliases() -> None:
    command = ev.parse_event("join_room", {"roomCode": "ab12cd", "userName": "Alice"})

    assert isinstance(command, ev.JoinRoom)
    assert command.room_code == "AB12CD"
    assert command.display_name == "Alice"


def test_create_room_without_payload() -> None:
    command = ev.parse_event("create_room", None)

    assert isinstance(command, ev.CreateRoom)
    assert command.room_code is None
    assert command.display_name is None


def test_add_to_queue_track_fields() -> None:
    command = ev.parse_event("add_to_queue", {
        "roomCode": "ROOM01",
        "track": {"name": "Song", "artist": "Band", "image": "http://img", "durationMs": 1000, "extra": 1},
    })

    assert command.track.title == "Song"
    assert command.track.artwork_url == "http://img"
    assert command.track.duration_ms == 1000


def test_report_playback_snapshot_aliases() -> None:
    command = ev.parse_event("report_playback", {
        "roomCode": "ROOM01",
        "playbackSnapshot": {"currentTrack": {"name": "Song"}, "position": 10, "isPlaying": True},
    })

    assert command.playback.track.title == "Song"
    assert command.playback.position_ms == 10
    assert command.playback.is_playing is True


def test_remove_from_queue_by_track_id() -> None:
    command = ev.parse_event("remove_from_queue", {"roomCode": "ROOM01", "trackId": "t-1"})

    assert command.track_id == "t-1"
    assert command.index is None


@pytest.mark.parametrize("event, data", [
    ("join_room", {}),
    ("join_room", {"roomCode": "no spaces"}),
    ("join_room", {"roomCode": "X" * 17}),
    ("join_room", ["ROOM01"]),
    ("add_to_queue", {"roomCode": "ROOM01"}),
    ("add_to_queue", {"roomCode": "ROOM01", "track": {"artist": "no title"}}),
    ("remove_from_queue", {"roomCode": "ROOM01"}),
    ("remove_from_queue", {"roomCode": "ROOM01", "index": -1}),
    ("set_host_device", {"roomCode": "ROOM01"}),
    ("report_playback", {"roomCode": "ROOM01", "playbackSnapshot": {"position": -5}}),
    ("unknown_event", {"roomCode": "ROOM01"}),
])
def test_malformed_payloads(event, data) -> None:
    with pytest.raises(MalformedEvent) as exc_info:
        ev.parse_event(event, data)

    assert exc_info.value.code == "malformed_event"
    assert event in exc_info.value.message


def test_every_inbound_event_is_parseable() -> None:
    payloads = {
        "create_room": {},
        "join_room": {"roomCode": "ROOM01"},
        "leave_room": {"roomCode": "ROOM01"},
        "add_to_queue": {"roomCode": "ROOM01", "track": {"title": "A"}},
        "remove_from_queue": {"roomCode": "ROOM01", "index": 0},
        "set_host_device": {"roomCode": "ROOM01", "deviceId": "d"},
        "report_playback": {"roomCode": "ROOM01", "playbackSnapshot": {}},
    }

    assert set(payloads) == set(ev.INBOUND_EVENTS)
    for event, data in payloads.items():
        assert ev.parse_event(event, data).event == event
