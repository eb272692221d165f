"""
Room-scoped command handling.

The dispatcher resolves the room, applies the command to its session and
publishes the resulting events while holding the room lock, then returns
a tagged result for the transport to acknowledge with. An unknown room is
an error result; an unknown entry or out-of-range index is a silent no-op.
"""
import logging
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from karaoke.models.results import (
    Ack,
    CommandError,
    ErrorKind,
    Joined,
    RoomCreated,
    UnplayableAction,
    UnplayableHandled,
)
from karaoke.models.room import QueueEntryRequest, RestrictionMode
from karaoke.services.broadcast import BroadcastGateway, Event
from karaoke.services.content_filter import ContentFilter
from karaoke.services.room import RoomRegistry, RoomSession

logger = logging.getLogger(__name__)


def room_not_found(room_id: Any) -> CommandError:
    logger.warning(f"Room {room_id} not found")
    return CommandError(error=ErrorKind.room_not_found, message="Room not found")


def invalid_payload(message: str) -> CommandError:
    return CommandError(error=ErrorKind.invalid_payload, message=message)


def _as_index(value: Any) -> Optional[int]:
    # bool is an int subclass; a JSON true is not an index
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


class CommandDispatcher:
    def __init__(self, registry: RoomRegistry, gateway: BroadcastGateway, content_filter: ContentFilter):
        self.registry = registry
        self.gateway = gateway
        self.content_filter = content_filter

    async def _apply(self, session: RoomSession, mutate: Callable[[], List[Event]]) -> List[Event]:
        async with session.lock:
            events = mutate()
            await self.gateway.publish_all(session.id, events)
        return events

    async def create_room(self, sid: str, display_name: Optional[str]):
        display_name = (display_name or "").strip() or "Karaoke"
        session = self.registry.create(display_name, host_connection_id=sid)
        self.gateway.subscribe(session.id, sid)
        await self.gateway.emit_to(sid, "room_created", {"room_id": session.id})
        return RoomCreated(room_id=session.id)

    async def join(self, sid: str, room_id: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        async with session.lock:
            # Subscribe and snapshot together so no delta falls in between
            self.gateway.subscribe(session.id, sid)
            snapshot = session.snapshot()
        logger.info(f"Connection {sid} joined room {session.id}")
        return Joined(room_id=session.id, room=snapshot)

    async def add_to_queue(self, sid: str, room_id: Any, entry: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        try:
            request = QueueEntryRequest.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"Rejected add_to_queue from {sid}: {e.error_count()} validation errors")
            return invalid_payload("Invalid queue entry")
        await self._apply(session, lambda: session.enqueue(request))
        return Ack()

    async def remove_from_queue(self, room_id: Any, entry_id: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        await self._apply(session, lambda: session.remove(entry_id))
        return Ack()

    async def move_in_queue(self, room_id: Any, from_index: Any, to_index: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        from_index, to_index = _as_index(from_index), _as_index(to_index)
        if from_index is None or to_index is None:
            return invalid_payload("Indices must be integers")
        await self._apply(session, lambda: session.move(from_index, to_index))
        return Ack()

    async def play_now(self, room_id: Any, entry_id: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        await self._apply(session, lambda: session.promote(entry_id))
        return Ack()

    async def play_next(self, room_id: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        await self._apply(session, session.advance)
        return Ack()

    async def start_performance(self, room_id: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        await self._apply(session, session.start_performance)
        return Ack()

    async def control_playback(self, room_id: Any, action: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        try:
            await self._apply(session, lambda: session.control_playback(action))
        except ValueError as e:
            return invalid_payload(str(e))
        return Ack()

    async def set_restriction_mode(self, room_id: Any, mode: Any):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        try:
            mode = RestrictionMode(mode)
        except ValueError:
            return invalid_payload(f"Unknown restriction mode {mode!r}")
        await self._apply(session, lambda: session.set_restriction_mode(mode))
        return Ack()

    def _reject(self, session: RoomSession, video_ref: str, author_ref: Optional[str]):
        self.content_filter.reject_video(video_ref)
        if author_ref:
            self.content_filter.reject_author(session.id, author_ref)

    async def blacklist_video(self, room_id: Any, video_ref: Any, author_ref: Any = None):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        if not video_ref or not isinstance(video_ref, str):
            return invalid_payload("video_ref is required")
        self._reject(session, video_ref, author_ref if isinstance(author_ref, str) else None)
        return Ack()

    async def report_unplayable(self, room_id: Any, video_ref: Any, author_ref: Any = None):
        session = self.registry.get(room_id)
        if not session:
            return room_not_found(room_id)
        if not video_ref or not isinstance(video_ref, str):
            return invalid_payload("video_ref is required")
        if session.room.restriction_mode == RestrictionMode.open:
            logger.info(f"Unplayable {video_ref} in open room {session.id}, leaving it to the external player")
            return UnplayableHandled(action=UnplayableAction.open_external)
        self._reject(session, video_ref, author_ref if isinstance(author_ref, str) else None)
        return UnplayableHandled(action=UnplayableAction.rejected)

    def disconnect(self, sid: str):
        self.gateway.disconnect(sid)
