import os

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

# Search provider. Without a key every search goes through the scrape path.
YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY") or None
YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
YOUTUBE_RESULTS_URL = "https://www.youtube.com/results"
YT_PROXY_URL = os.getenv("PROXY_URL") or None # yt-dlp lookups for direct links

SEARCH_TIMEOUT = float(os.getenv("SEARCH_TIMEOUT", "12"))
SCRAPE_TIMEOUT = float(os.getenv("SCRAPE_TIMEOUT", "5"))
SEARCH_MAX_RESULTS = int(os.getenv("SEARCH_MAX_RESULTS", "10"))
SEARCH_QUERY_SUFFIX = os.getenv("SEARCH_QUERY_SUFFIX", "karaoke")

ROOM_ID_LENGTH = int(os.getenv("ROOM_ID_LENGTH", "6"))
ROOM_ID_ATTEMPTS = 10
