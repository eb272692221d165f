import logging
import functools
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import socketio

from karaoke import config
from karaoke.models.results import CommandError, ErrorKind, serialize
from karaoke.services.broadcast import BroadcastGateway
from karaoke.services.commands import CommandDispatcher
from karaoke.services.content_filter import ContentFilter
from karaoke.services.media import SongSearch
from karaoke.services.room import RoomRegistry

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

origins = config.ALLOWED_ORIGINS

sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins=origins if origins != ["*"] else "*")

# Process-wide state, owned here and injected everywhere else
registry = RoomRegistry()
content_filter = ContentFilter()
gateway = BroadcastGateway(sio)
dispatcher = CommandDispatcher(registry, gateway, content_filter)
song_search = SongSearch(content_filter)


@asynccontextmanager
async def lifespan(app):
    logger.info("Karaoke queue server started")
    yield
    registry.close()
    gateway.clear()
    content_filter.clear()
    logger.info("Karaoke queue server stopped")


app = FastAPI(title="Karaoke Queue", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

socket_app = socketio.ASGIApp(sio, app)


# REST API
class CreateRoomRequest(BaseModel):
    display_name: str
    host_id: Optional[str] = None


@app.post("/api/rooms/create")
async def create_room_endpoint(body: CreateRoomRequest):
    display_name = body.display_name.strip()
    if not display_name:
        raise HTTPException(status_code=400, detail="display_name is required")
    session = registry.create(display_name, host_connection_id=body.host_id)
    return {"room_id": session.id}


@app.get("/api/rooms/{room_id}")
async def check_room(room_id: str):
    session = registry.get(room_id)
    if not session:
        raise HTTPException(status_code=404, detail="Room not found")
    return {
        "room_id": session.id,
        "display_name": session.room.display_name,
        "created_at": session.room.created_at,
    }


@app.get("/api/search")
async def search_endpoint(q: str = "", room_id: Optional[str] = None, force_scrape: bool = False):
    # Author rejections are keyed by the canonical room id
    session = registry.get(room_id)
    outcome = await song_search.search(q, room_id=session.id if session else None, force_scrape=force_scrape)
    return outcome.model_dump(mode="json")


# Socket Events
def command(handler):
    """Turn a handler's result into an ack payload; unexpected failures become an InternalError result."""
    @functools.wraps(handler)
    async def wrapper(sid, data=None):
        try:
            result = await handler(sid, data if data is not None else {})
        except Exception as e:
            logger.error(f"Error in {handler.__name__}: {e}", exc_info=True)
            result = CommandError(error=ErrorKind.internal_error, message="Internal server error")
        return serialize(result)
    return wrapper


def _field(data, name):
    return data.get(name) if isinstance(data, dict) else None


@sio.event
async def connect(sid, environ):
    logger.info(f"Client {sid} connected")


@sio.event
async def disconnect(sid, *args):
    logger.info(f"Client {sid} disconnected")
    dispatcher.disconnect(sid)


@sio.event
@command
async def create_room(sid, data):
    display_name = data if isinstance(data, str) else _field(data, "display_name")
    return await dispatcher.create_room(sid, display_name)


@sio.event
@command
async def join(sid, data):
    # Accept a bare room id as well as {"room_id": ...}
    room_id = data if isinstance(data, str) else _field(data, "room_id")
    logger.info(f"Join request: sid={sid}, room={room_id}")
    return await dispatcher.join(sid, room_id)


@sio.event
@command
async def add_to_queue(sid, data):
    return await dispatcher.add_to_queue(sid, _field(data, "room_id"), _field(data, "entry"))


@sio.event
@command
async def remove_from_queue(sid, data):
    return await dispatcher.remove_from_queue(_field(data, "room_id"), _field(data, "entry_id"))


@sio.event
@command
async def move_in_queue(sid, data):
    return await dispatcher.move_in_queue(_field(data, "room_id"), _field(data, "from_index"), _field(data, "to_index"))


@sio.event
@command
async def play_now(sid, data):
    return await dispatcher.play_now(_field(data, "room_id"), _field(data, "entry_id"))


@sio.event
@command
async def play_next(sid, data):
    return await dispatcher.play_next(_field(data, "room_id"))


@sio.event
@command
async def start_performance(sid, data):
    return await dispatcher.start_performance(_field(data, "room_id"))


@sio.event
@command
async def control_playback(sid, data):
    return await dispatcher.control_playback(_field(data, "room_id"), _field(data, "action"))


@sio.event
@command
async def set_restriction_mode(sid, data):
    return await dispatcher.set_restriction_mode(_field(data, "room_id"), _field(data, "mode"))


@sio.event
@command
async def blacklist_video(sid, data):
    return await dispatcher.blacklist_video(
        _field(data, "room_id"), _field(data, "video_ref"), _field(data, "author_ref")
    )


@sio.event
@command
async def report_unplayable(sid, data):
    return await dispatcher.report_unplayable(
        _field(data, "room_id"), _field(data, "video_ref"), _field(data, "author_ref")
    )
