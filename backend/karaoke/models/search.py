from enum import Enum
from pydantic import BaseModel
from typing import List, Optional

class SearchSource(str, Enum):
    api = "api"
    scraping = "scraping"
    direct = "direct"

class SearchResult(BaseModel):
    video_ref: str
    title: str
    thumbnail_ref: Optional[str] = None
    author: Optional[str] = None # Channel name, also used as the author ref for blacklisting
    timestamp: Optional[str] = None # Published / length text when the source has it

class SearchOutcome(BaseModel):
    results: List[SearchResult] = []
    source: Optional[SearchSource] = None # None when no lookup was made
    error: Optional[str] = None
