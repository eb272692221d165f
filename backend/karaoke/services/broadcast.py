"""
Fan-out of room events to subscribed connections.

Subscriptions are an explicit room_id -> set of connection ids mapping,
updated on join and disconnect. Delivery is best-effort: one attempt per
connection, nothing is stored for later replay.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, Set, Tuple

logger = logging.getLogger(__name__)

Event = Tuple[str, Any]


class BroadcastGateway:
    def __init__(self, emitter):
        # emitter: anything with ``async emit(event, data, to=sid)``, normally the socketio.AsyncServer
        self._emitter = emitter
        self._subscribers: Dict[str, Set[str]] = defaultdict(set)
        self._rooms_by_sid: Dict[str, Set[str]] = defaultdict(set)

    def subscribe(self, room_id: str, sid: str):
        self._subscribers[room_id].add(sid)
        self._rooms_by_sid[sid].add(room_id)
        logger.info(f"Connection {sid} subscribed to room {room_id} (total: {len(self._subscribers[room_id])})")

    def unsubscribe(self, room_id: str, sid: str):
        subscribers = self._subscribers.get(room_id)
        if subscribers is not None:
            subscribers.discard(sid)
            if not subscribers:
                del self._subscribers[room_id]
        rooms = self._rooms_by_sid.get(sid)
        if rooms is not None:
            rooms.discard(room_id)
            if not rooms:
                del self._rooms_by_sid[sid]

    def disconnect(self, sid: str):
        """Drop every subscription held by ``sid``."""
        for room_id in list(self._rooms_by_sid.get(sid, ())):
            self.unsubscribe(room_id, sid)

    def subscribers(self, room_id: str) -> Set[str]:
        return set(self._subscribers.get(room_id, ()))

    async def emit_to(self, sid: str, event: str, payload: Any) -> bool:
        try:
            await self._emitter.emit(event, payload, to=sid)
            return True
        except Exception as e:
            logger.warning(f"Dropped {event} for {sid}: {e}")
            return False

    async def publish(self, room_id: str, event: str, payload: Any) -> int:
        """Deliver ``payload`` to every current subscriber of ``room_id``. Returns the delivered count."""
        delivered = 0
        # Copy: a disconnect may land while we await a send
        for sid in list(self._subscribers.get(room_id, ())):
            if await self.emit_to(sid, event, payload):
                delivered += 1
        return delivered

    async def publish_all(self, room_id: str, events: Iterable[Event]):
        for event, payload in events:
            await self.publish(room_id, event, payload)

    def clear(self):
        self._subscribers.clear()
        self._rooms_by_sid.clear()
