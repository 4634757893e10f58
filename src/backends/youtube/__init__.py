"""YouTube tools - proxies for the YouTube Data API v3.

Provides:
- youtube_search: live keyword search
- youtube_get_video: details for one video id

Both normalize API items into VideoRecord dictionaries.
"""

from typing import TYPE_CHECKING, Any, Optional

import httpx

from shared.config import YouTubeSettings
from shared.logging import get_logger
from shared.models import VideoRecord
from shared.schema import limit_property, object_schema, string_property
from backends.base import BackendError, HTTPBackend
from backends.dataset.records import derive_tags

if TYPE_CHECKING:
    from mcp_server.registry import ToolRegistry

logger = get_logger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


def record_from_item(item: Any) -> Optional[VideoRecord]:
    """
    Normalize one ``search`` or ``videos`` item.

    Search items carry ``id.videoId``; video items carry ``id`` directly.
    Returns None for items with neither an id nor a title.
    """
    if not isinstance(item, dict):
        return None

    raw_id = item.get("id")
    video_id = raw_id.get("videoId") if isinstance(raw_id, dict) else raw_id
    if not isinstance(video_id, str):
        video_id = ""

    snippet = item.get("snippet")
    if not isinstance(snippet, dict):
        snippet = {}

    title = snippet.get("title") if isinstance(snippet.get("title"), str) else ""
    if not video_id and not title:
        return None

    description = snippet.get("description")
    api_tags = snippet.get("tags")
    keywords = " ".join(t for t in api_tags if isinstance(t, str)) if isinstance(api_tags, list) else ""
    published_at = snippet.get("publishedAt")

    return VideoRecord(
        id=video_id,
        title=title,
        url=WATCH_URL.format(video_id=video_id) if video_id else "",
        published_at=published_at if isinstance(published_at, str) else "",
        tags=derive_tags(description if isinstance(description, str) else "", keywords),
    )


class YouTubeBackend(HTTPBackend):
    """Base for tools backed by the YouTube Data API."""

    source_label = "YouTube API"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://www.googleapis.com/youtube/v3",
        timeout: float = 10.0,
        default_limit: int = 10,
        max_limit: int = 50,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        super().__init__(base_url=base_url, timeout=timeout, transport=transport)
        self.api_key = api_key
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def _items(self, path: str, params: dict[str, Any]) -> list[Any]:
        if not self.api_key:
            raise BackendError("YouTube API key is not configured")

        payload = await self._get_json(path, params={**params, "key": self.api_key})
        if not isinstance(payload, dict):
            raise BackendError(f"{self.source_label} returned an unexpected payload")

        items = payload.get("items") or []
        if not isinstance(items, list):
            raise BackendError(f"{self.source_label} returned an unexpected payload")
        return items

    def _normalize(self, items: list[Any]) -> list[dict[str, Any]]:
        records = []
        for item in items:
            record = record_from_item(item)
            if record is None:
                logger.debug("Skipping malformed API item", backend=self.name)
                continue
            records.append(record.to_wire())
        return records


class YouTubeSearchBackend(YouTubeBackend):
    name = "youtube_search"
    description = "Search YouTube for videos."

    @property
    def input_schema(self) -> dict[str, Any]:
        return object_schema(
            {
                "query": string_property("Search terms"),
                "limit": limit_property(self.default_limit, self.max_limit),
            },
            required=["query"]
        )

    async def invoke(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        query = self._require_text(arguments, "query")
        limit = self._limit(arguments, self.default_limit, self.max_limit)

        items = await self._items(
            "search",
            {"part": "snippet", "type": "video", "maxResults": limit, "q": query}
        )
        return self._normalize(items)[:limit]


class YouTubeVideoBackend(YouTubeBackend):
    name = "youtube_get_video"
    description = "Retrieve details for a YouTube video ID."

    @property
    def input_schema(self) -> dict[str, Any]:
        return object_schema(
            {"videoId": string_property("YouTube video id, e.g. dQw4w9WgXcQ")},
            required=["videoId"]
        )

    async def invoke(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        video_id = self._require_text(arguments, "videoId")

        items = await self._items(
            "videos",
            {"part": "snippet,contentDetails,player", "id": video_id}
        )
        return self._normalize(items)[:1]


def build_youtube_backends(
    settings: YouTubeSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> list[YouTubeBackend]:
    """Create the YouTube tools from settings."""
    options = {
        "api_key": settings.api_key,
        "base_url": settings.base_url,
        "timeout": settings.timeout_seconds,
        "default_limit": settings.default_limit,
        "max_limit": settings.max_limit,
        "transport": transport,
    }
    return [YouTubeSearchBackend(**options), YouTubeVideoBackend(**options)]


def register_youtube_tools(registry: "ToolRegistry", settings: YouTubeSettings) -> None:
    """Register the YouTube tools with the MCP server."""
    backends = build_youtube_backends(settings)
    for backend in backends:
        registry.register(backend)

    logger.info(
        "YouTube tools registered",
        tool_count=len(backends),
        api_key_configured=bool(settings.api_key)
    )
