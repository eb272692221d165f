"""
Acknowledgment payloads returned by socket commands.

Every result is tagged by ``variant``; ``success`` is kept alongside so
clients that only look at the flag keep working.
"""
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from karaoke.models.room import RoomSnapshot


class ErrorKind(str, Enum):
    room_not_found = "RoomNotFound"
    invalid_payload = "InvalidPayload"
    internal_error = "InternalError"


class Ack(BaseModel):
    variant: Literal["ack"] = "ack"
    success: Literal[True] = True


class Joined(BaseModel):
    variant: Literal["joined"] = "joined"
    success: Literal[True] = True
    room_id: str
    room: RoomSnapshot


class RoomCreated(BaseModel):
    variant: Literal["room_created"] = "room_created"
    success: Literal[True] = True
    room_id: str


class UnplayableAction(str, Enum):
    rejected = "rejected"
    open_external = "open_external"


class UnplayableHandled(BaseModel):
    variant: Literal["unplayable_handled"] = "unplayable_handled"
    success: Literal[True] = True
    action: UnplayableAction


class CommandError(BaseModel):
    variant: Literal["error"] = "error"
    success: Literal[False] = False
    error: ErrorKind
    message: Optional[str] = None


class CommandResult(BaseModel):
    result: Union[Ack, Joined, RoomCreated, UnplayableHandled, CommandError] = Field(discriminator="variant")


def serialize(result: BaseModel) -> dict:
    return result.model_dump(mode="json")
