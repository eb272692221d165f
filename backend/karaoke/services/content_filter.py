import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from karaoke.models.search import SearchResult

logger = logging.getLogger(__name__)


class ContentFilter:
    """
    Rejected videos (process-wide) and rejected authors (per room).

    Rejections are never undone while the process runs. They only stop
    future search results from surfacing; entries already queued stay.
    """

    def __init__(self):
        self.rejected_video_refs: Set[str] = set()
        self.rejected_authors_by_room: Dict[str, Set[str]] = defaultdict(set)

    def reject_video(self, video_ref: str):
        if video_ref not in self.rejected_video_refs:
            self.rejected_video_refs.add(video_ref)
            logger.info(f"Video {video_ref} rejected")

    def reject_author(self, room_id: str, author_ref: str):
        authors = self.rejected_authors_by_room[room_id]
        if author_ref not in authors:
            authors.add(author_ref)
            logger.info(f"Author {author_ref!r} rejected in room {room_id}")

    def is_video_rejected(self, video_ref: str) -> bool:
        return video_ref in self.rejected_video_refs

    def is_allowed(self, result: SearchResult, room_id: Optional[str] = None) -> bool:
        if result.video_ref in self.rejected_video_refs:
            return False
        if room_id and result.author:
            authors = self.rejected_authors_by_room.get(room_id)
            if authors and result.author in authors:
                return False
        return True

    def filter_results(self, results: Iterable[SearchResult], room_id: Optional[str] = None) -> List[SearchResult]:
        return [r for r in results if self.is_allowed(r, room_id)]

    def clear(self):
        self.rejected_video_refs.clear()
        self.rejected_authors_by_room.clear()
