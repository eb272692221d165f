from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional

class RestrictionMode(str, Enum):
    blacklist = "blacklist" # Reject unplayable videos and filter them from searches
    open = "open" # Accept them and let the client open an external fallback

class QueueEntryRequest(BaseModel):
    """Song as submitted by a requester, before the server stamps it."""
    video_ref: str = Field(min_length=1)
    title: str
    thumbnail_ref: Optional[str] = None
    requested_by: str = "Guest" # Display name, not unique

class QueueEntry(QueueEntryRequest):
    entry_id: str
    added_at: float # Display only

class RoomSnapshot(BaseModel):
    queue: List[QueueEntry] = []
    current_performance: Optional[QueueEntry] = None
    is_performing: bool = False
    restriction_mode: RestrictionMode = RestrictionMode.blacklist

class Room(RoomSnapshot):
    id: str
    display_name: str
    host_connection_id: Optional[str] = None # Informational only
    created_at: float

    def snapshot(self) -> RoomSnapshot:
        return RoomSnapshot(
            queue=[e.model_copy() for e in self.queue],
            current_performance=self.current_performance.model_copy() if self.current_performance else None,
            is_performing=self.is_performing,
            restriction_mode=self.restriction_mode,
        )
