import re
import json
import logging
import asyncio
from typing import Optional, List, Any, Iterator
import httpx
from yt_dlp import YoutubeDL
import requests
from bs4 import BeautifulSoup

from karaoke import config
from karaoke.models.search import SearchResult, SearchOutcome, SearchSource
from karaoke.services.content_filter import ContentFilter

logger = logging.getLogger(__name__)

VIDEO_URL_RE = re.compile(
    r'(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?|shorts)/|.*[?&]v=)|youtu\.be/)([^"&?/\s]{11})'
)

HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36',
    'Accept-Language': 'en-US,en;q=0.9',
}


class SearchError(Exception):
    pass


class SearchTimeout(SearchError):
    pass


class SearchProviderError(SearchError):
    pass


def extract_video_id(query: str) -> Optional[str]:
    match = VIDEO_URL_RE.search(query)
    return match.group(1) if match else None


def thumbnail_for(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/mqdefault.jpg"


def normalize_query(query: str, suffix: Optional[str] = config.SEARCH_QUERY_SUFFIX) -> str:
    """Collapse whitespace and append the suffix unless the query already mentions it."""
    query = " ".join(query.split())
    if suffix and suffix.lower() not in query.lower():
        query = f"{query} {suffix}"
    return query


def _text(node: Any) -> Optional[str]:
    # Results page text is either {"simpleText": ...} or {"runs": [{"text": ...}, ...]}
    if not isinstance(node, dict):
        return None
    if 'simpleText' in node:
        return node['simpleText']
    runs = node.get('runs')
    if runs:
        return "".join(r.get('text', '') for r in runs)
    return None


def _video_renderers(node: Any) -> Iterator[dict]:
    if isinstance(node, dict):
        renderer = node.get('videoRenderer')
        if isinstance(renderer, dict):
            yield renderer
        for value in node.values():
            yield from _video_renderers(value)
    elif isinstance(node, list):
        for value in node:
            yield from _video_renderers(value)


def parse_results_page(html: str, max_results: int = config.SEARCH_MAX_RESULTS) -> List[SearchResult]:
    """
    Pull video results out of a search results page.

    The page embeds its data as ``var ytInitialData = {...};`` in a script
    tag. Raises SearchProviderError when that blob is missing or unreadable.
    """
    soup = BeautifulSoup(html, 'html.parser')
    data = None
    for script in soup.find_all('script'):
        text = script.string or ''
        marker = text.find('ytInitialData')
        if marker == -1:
            continue
        start = text.find('{', marker)
        end = text.rfind('}')
        if start == -1 or end < start:
            continue
        try:
            data = json.loads(text[start:end + 1])
            break
        except ValueError as e:
            raise SearchProviderError(f"Unreadable results page: {e}") from e

    if data is None:
        raise SearchProviderError("No result data in page")

    results = []
    seen = set()
    for renderer in _video_renderers(data):
        video_id = renderer.get('videoId')
        if not video_id or video_id in seen:
            continue
        seen.add(video_id)
        thumbnails = (renderer.get('thumbnail') or {}).get('thumbnails') or []
        results.append(SearchResult(
            video_ref=video_id,
            title=_text(renderer.get('title')) or 'Unknown Video',
            thumbnail_ref=thumbnails[-1].get('url') if thumbnails else thumbnail_for(video_id),
            author=_text(renderer.get('ownerText')) or _text(renderer.get('longBylineText')),
            timestamp=_text(renderer.get('publishedTimeText')),
        ))
        if len(results) >= max_results:
            break
    return results


def _scrape_results(query: str, max_results: int = config.SEARCH_MAX_RESULTS) -> List[SearchResult]:
    try:
        response = requests.get(
            config.YOUTUBE_RESULTS_URL,
            params={'search_query': query},
            headers=HEADERS,
            timeout=config.SCRAPE_TIMEOUT,
        )
        response.raise_for_status()
    except requests.Timeout as e:
        raise SearchTimeout(f"Results page timed out: {e}") from e
    except requests.RequestException as e:
        raise SearchProviderError(f"Results page request failed: {e}") from e
    return parse_results_page(response.text, max_results)


def _extract_info(video_id: str) -> Optional[SearchResult]:
    ydl_opts = {
        'quiet': True,
        'no_warnings': True,
        'noplaylist': True,
        'skip_download': True,
        'source_address': '0.0.0.0', # bind to ipv4
        'socket_timeout': config.SEARCH_TIMEOUT,
    }
    if config.YT_PROXY_URL:
        ydl_opts['proxy'] = config.YT_PROXY_URL

    try:
        with YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(f"https://www.youtube.com/watch?v={video_id}", download=False)
            return SearchResult(
                video_ref=video_id,
                title=info.get('title') or f"YouTube Video ({video_id})",
                thumbnail_ref=info.get('thumbnail') or thumbnail_for(video_id),
                author=info.get('channel') or info.get('uploader'),
            )
    except Exception as e:
        logger.error(f"yt-dlp lookup error for {video_id}: {e}")
        return None


class SongSearch:
    """
    Video search for requesters.

    Free-text queries go to the provider API first (bounded by ``timeout``).
    On timeout, a non-2xx answer or a missing API key the results page is
    scraped instead, once. Every result set passes the content filter for
    the requesting room.
    """

    def __init__(self, content_filter: ContentFilter, api_key: Optional[str] = config.YOUTUBE_API_KEY,
                 timeout: float = config.SEARCH_TIMEOUT, max_results: int = config.SEARCH_MAX_RESULTS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.content_filter = content_filter
        self.api_key = api_key
        self.timeout = timeout
        self.max_results = max_results
        self.transport = transport

    async def _search_api(self, query: str) -> List[SearchResult]:
        params = {
            'part': 'snippet',
            'maxResults': self.max_results,
            'q': query,
            'type': 'video',
            'key': self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(config.YOUTUBE_SEARCH_URL, params=params)
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise SearchProviderError(f"Unexpected provider body: {type(data).__name__}")
        except httpx.TimeoutException as e:
            raise SearchTimeout(f"Provider timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise SearchProviderError(f"Provider answered {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise SearchProviderError(f"Provider request failed: {e}") from e

        results = []
        items = data.get('items')
        if not isinstance(items, list):
            items = []
        for item in items:
            if not isinstance(item, dict):
                continue
            video_id = (item.get('id') or {}).get('videoId')
            if not video_id:
                continue
            snippet = item.get('snippet') or {}
            thumbnail = ((snippet.get('thumbnails') or {}).get('medium') or {}).get('url')
            results.append(SearchResult(
                video_ref=video_id,
                title=snippet.get('title') or 'Unknown Video',
                thumbnail_ref=thumbnail or thumbnail_for(video_id),
                author=snippet.get('channelTitle'),
                timestamp=snippet.get('publishedAt'),
            ))
        return results

    async def _search_scrape(self, query: str) -> List[SearchResult]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _scrape_results, query, self.max_results)

    async def _lookup_direct(self, video_id: str) -> SearchResult:
        loop = asyncio.get_running_loop()
        try:
            result = await asyncio.wait_for(loop.run_in_executor(None, _extract_info, video_id), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"yt-dlp lookup for {video_id} timed out after {self.timeout}s")
            result = None
        if result is None:
            result = SearchResult(
                video_ref=video_id,
                title=f"YouTube Video ({video_id})",
                thumbnail_ref=thumbnail_for(video_id),
                author='YouTube',
            )
        return result

    async def search(self, query: Optional[str], room_id: Optional[str] = None,
                     force_scrape: bool = False) -> SearchOutcome:
        query = (query or '').strip()
        if not query:
            return SearchOutcome()

        video_id = extract_video_id(query)
        if video_id:
            result = await self._lookup_direct(video_id)
            return SearchOutcome(
                results=self.content_filter.filter_results([result], room_id),
                source=SearchSource.direct,
            )

        query = normalize_query(query)
        results = None
        source = SearchSource.api
        if self.api_key and not force_scrape:
            try:
                results = await self._search_api(query)
            except SearchError as e:
                logger.warning(f"Provider search failed for {query!r}, falling back to scraping: {e}")

        if results is None:
            source = SearchSource.scraping
            try:
                results = await self._search_scrape(query)
            except SearchError as e:
                logger.error(f"Search failed for {query!r}: {e}")
                return SearchOutcome(source=source, error=str(e))

        logger.info(f"Search {query!r} via {source.value}: {len(results)} results")
        return SearchOutcome(
            results=self.content_filter.filter_results(results, room_id),
            source=source,
        )
