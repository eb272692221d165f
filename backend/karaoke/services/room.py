import asyncio
import logging
import secrets
import string
import time
import uuid
from typing import Dict, List, Optional

from karaoke import config
from karaoke.models.room import QueueEntry, QueueEntryRequest, RestrictionMode, Room, RoomSnapshot
from karaoke.services import queue as queue_ops
from karaoke.services.broadcast import Event

logger = logging.getLogger(__name__)

# Server -> client events
QUEUE_UPDATED = "queue_updated"
SINGER_ANNOUNCEMENT = "singer_announcement"
NOW_PLAYING = "now_playing"
PLAYBACK_ACTION = "playback_action"
RESTRICTION_MODE_CHANGED = "restriction_mode_changed"

PLAYBACK_ACTIONS = ("play", "pause")

ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_id(length: int = config.ROOM_ID_LENGTH) -> str:
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(length))


class RoomSession:
    """
    Authoritative state for one room.

    States: Idle (no current performance), Announced (current set, not
    performing) and Performing. Every mutating method applies its change
    and returns the events to broadcast, in emission order. Callers hold
    ``lock`` across the mutation and the broadcast.
    """

    def __init__(self, room: Room):
        self.room = room
        self.lock = asyncio.Lock()

    @property
    def id(self) -> str:
        return self.room.id

    @property
    def state(self) -> str:
        if self.room.current_performance is None:
            return "idle"
        return "performing" if self.room.is_performing else "announced"

    def snapshot(self) -> RoomSnapshot:
        return self.room.snapshot()

    def _queue_payload(self) -> list:
        return [e.model_dump(mode="json") for e in self.room.queue]

    def _queue_updated(self) -> Event:
        return (QUEUE_UPDATED, self._queue_payload())

    def _announce(self, entry: QueueEntry) -> Event:
        return (SINGER_ANNOUNCEMENT, entry.model_dump(mode="json"))

    def enqueue(self, request: QueueEntryRequest) -> List[Event]:
        entry = QueueEntry(
            **request.model_dump(),
            entry_id=uuid.uuid4().hex,
            added_at=time.time(),
        )
        room = self.room
        if room.current_performance is None:
            room.current_performance = entry
            room.is_performing = False
            logger.info(f"Announcing {entry.title!r} by {entry.requested_by} in room {room.id}")
            return [self._announce(entry)]

        queue_ops.append(room.queue, entry)
        logger.info(f"Queued {entry.title!r} by {entry.requested_by} in room {room.id} (queue length: {len(room.queue)})")
        return [self._queue_updated()]

    def remove(self, entry_id: str) -> List[Event]:
        if not queue_ops.remove_by_id(self.room.queue, entry_id):
            return []
        logger.info(f"Removed entry {entry_id} from room {self.room.id}")
        return [self._queue_updated()]

    def move(self, from_index: int, to_index: int) -> List[Event]:
        if not queue_ops.move_by_index(self.room.queue, from_index, to_index):
            return []
        return [self._queue_updated()]

    def promote(self, entry_id: str) -> List[Event]:
        room = self.room
        entry = queue_ops.take_by_id(room.queue, entry_id)
        if entry is None:
            return []
        # The replaced current performance is dropped, not requeued
        room.current_performance = entry
        room.is_performing = False
        logger.info(f"Play now: {entry.title!r} promoted in room {room.id}")
        return [self._announce(entry), self._queue_updated()]

    def advance(self) -> List[Event]:
        room = self.room
        room.is_performing = False
        entry = queue_ops.pop_front(room.queue)
        room.current_performance = entry
        if entry is None:
            logger.info(f"Queue finished in room {room.id}")
            return [(NOW_PLAYING, None), self._queue_updated()]
        logger.info(f"Next up in room {room.id}: {entry.title!r} by {entry.requested_by}")
        return [self._announce(entry), self._queue_updated()]

    def start_performance(self) -> List[Event]:
        room = self.room
        if room.current_performance is None or room.is_performing:
            return []
        room.is_performing = True
        logger.info(f"Performance started in room {room.id}: {room.current_performance.title!r}")
        return [(NOW_PLAYING, room.current_performance.model_dump(mode="json"))]

    def control_playback(self, action: str) -> List[Event]:
        # Relayed signal only; is_performing is not touched
        if action not in PLAYBACK_ACTIONS:
            raise ValueError(f"Unknown playback action {action!r}")
        if self.state != "performing":
            return []
        return [(PLAYBACK_ACTION, action)]

    def set_restriction_mode(self, mode: RestrictionMode) -> List[Event]:
        if self.room.restriction_mode == mode:
            return []
        self.room.restriction_mode = mode
        logger.info(f"Room {self.room.id} restriction mode set to {mode.value}")
        return [(RESTRICTION_MODE_CHANGED, mode.value)]


class RoomRegistry:
    """Process-wide room_id -> RoomSession mapping. Rooms live until ``close``."""

    def __init__(self, id_length: int = config.ROOM_ID_LENGTH, max_attempts: int = config.ROOM_ID_ATTEMPTS):
        self._sessions: Dict[str, RoomSession] = {}
        self.id_length = id_length
        self.max_attempts = max_attempts

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, room_id: str) -> bool:
        return self.get(room_id) is not None

    def _new_room_id(self) -> str:
        for _ in range(self.max_attempts):
            room_id = generate_room_id(self.id_length)
            if room_id not in self._sessions:
                return room_id
        raise RuntimeError(f"Failed to generate a unique room id after {self.max_attempts} attempts")

    def create(self, display_name: str, host_connection_id: Optional[str] = None) -> RoomSession:
        room = Room(
            id=self._new_room_id(),
            display_name=display_name,
            host_connection_id=host_connection_id,
            created_at=time.time(),
        )
        session = RoomSession(room)
        self._sessions[room.id] = session
        logger.info(f"Room created: {room.id} ({display_name})")
        return session

    def get(self, room_id: Optional[str]) -> Optional[RoomSession]:
        if not room_id or not isinstance(room_id, str):
            return None
        return self._sessions.get(room_id.strip().upper())

    def close(self):
        logger.info(f"Closing registry with {len(self._sessions)} rooms")
        self._sessions.clear()
