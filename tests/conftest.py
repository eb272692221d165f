import asyncio

import pytest

from karaoke.models.room import QueueEntry
from karaoke.services.broadcast import BroadcastGateway
from karaoke.services.commands import CommandDispatcher
from karaoke.services.content_filter import ContentFilter
from karaoke.services.room import RoomRegistry


class RecordingEmitter:
    """Stands in for socketio.AsyncServer: records (event, data, sid) per emit."""

    def __init__(self):
        self.sent = []
        self.failing = set()

    async def emit(self, event, data=None, to=None, **kwargs):
        # Yield like a real transport send would
        await asyncio.sleep(0)
        if to in self.failing:
            raise ConnectionError(f"{to} is gone")
        self.sent.append((event, data, to))

    def events_for(self, sid):
        return [(event, data) for event, data, to in self.sent if to == sid]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def gateway(emitter):
    return BroadcastGateway(emitter)


@pytest.fixture
def content_filter():
    return ContentFilter()


@pytest.fixture
def dispatcher(registry, gateway, content_filter):
    return CommandDispatcher(registry, gateway, content_filter)


@pytest.fixture
def room_id(registry):
    return registry.create("Friday Night").id


def song(title, requested_by="Ana", video_ref=None):
    return {
        "video_ref": video_ref or f"vid-{title[:6]}",
        "title": title,
        "thumbnail_ref": "https://img.example/thumb.jpg",
        "requested_by": requested_by,
    }


def make_entry(entry_id, title=None):
    return QueueEntry(
        video_ref=f"v-{entry_id}",
        title=title or entry_id,
        requested_by="Ana",
        entry_id=entry_id,
        added_at=0.0,
    )
