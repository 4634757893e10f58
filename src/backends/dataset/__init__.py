"""Dataset tools - queries over a CSV export of videos.

The export is fetched (http/https) or read from disk and parsed on every
call unless a cache TTL is configured. Provides:
- search_videos: keyword search over titles and tags
- latest_videos: most recently published first
- videos_by_category: category filter over tags and titles
"""

import asyncio
import time
from abc import abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

import aiofiles
import httpx

from shared.config import DatasetSettings
from shared.logging import get_logger
from shared.models import VideoRecord
from shared.schema import limit_property, object_schema, string_property
from backends.base import BackendError, ToolBackend, fetch
from backends.dataset.records import parse_records, parse_timestamp

if TYPE_CHECKING:
    from mcp_server.registry import ToolRegistry

logger = get_logger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class DatasetSource:
    """
    Loads the CSV export.

    With ``cache_ttl_seconds`` at 0 every load re-reads the source. A
    positive TTL keeps the parsed records for that long.
    """

    def __init__(
        self,
        url: Optional[str],
        timeout: float = 15.0,
        cache_ttl_seconds: float = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.cache_ttl_seconds = cache_ttl_seconds
        self._transport = transport
        self._cached: Optional[tuple[float, list[VideoRecord]]] = None
        self._lock = asyncio.Lock()

    async def load(self) -> list[VideoRecord]:
        if not self.cache_ttl_seconds:
            return await self._load_fresh()

        async with self._lock:
            now = time.monotonic()
            if self._cached and now - self._cached[0] < self.cache_ttl_seconds:
                return self._cached[1]
            records = await self._load_fresh()
            self._cached = (now, records)
            return records

    async def _load_fresh(self) -> list[VideoRecord]:
        if not self.url:
            raise BackendError("Dataset source URL is not configured")

        if self.url.startswith(("http://", "https://")):
            response = await fetch(
                self.url,
                timeout=self.timeout,
                transport=self._transport,
                label="dataset source",
            )
            text = response.text
        else:
            try:
                async with aiofiles.open(self.url, "r", encoding="utf-8-sig") as f:
                    text = await f.read()
            except OSError as e:
                raise BackendError(f"dataset file could not be read: {e.strerror or e}")
            except UnicodeDecodeError as e:
                raise BackendError(f"dataset file is not valid UTF-8: {e.reason} at byte {e.start}")

        records = parse_records(text)
        logger.debug("Dataset loaded", record_count=len(records))
        return records


class DatasetBackend(ToolBackend):
    """Base for tools answering from the dataset."""

    def __init__(
        self,
        source: DatasetSource,
        default_limit: int = 10,
        max_limit: int = 50
    ) -> None:
        self.source = source
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def invoke(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        limit = self._limit(arguments, self.default_limit, self.max_limit)
        records = self.select(await self.source.load(), arguments)
        return [record.to_wire() for record in records[:limit]]

    @abstractmethod
    def select(
        self,
        records: list[VideoRecord],
        arguments: dict[str, Any]
    ) -> list[VideoRecord]:
        """Return the matching records, in result order."""
        pass


class SearchVideosBackend(DatasetBackend):
    name = "search_videos"
    description = (
        "Search the video dataset by keyword. Matches the query "
        "case-insensitively against video titles and tags, in dataset order."
    )

    @property
    def input_schema(self) -> dict[str, Any]:
        return object_schema(
            {
                "query": string_property("Keyword or phrase to search for"),
                "limit": limit_property(self.default_limit, self.max_limit),
            },
            required=["query"]
        )

    def select(
        self,
        records: list[VideoRecord],
        arguments: dict[str, Any]
    ) -> list[VideoRecord]:
        query = self._require_text(arguments, "query").lower()
        return [
            record for record in records
            if query in record.title.lower()
            or any(query in tag for tag in record.tags)
        ]


class LatestVideosBackend(DatasetBackend):
    name = "latest_videos"
    description = (
        "List the most recently published videos in the dataset, newest first. "
        "Videos without a readable publish date come last."
    )

    @property
    def input_schema(self) -> dict[str, Any]:
        return object_schema(
            {"limit": limit_property(self.default_limit, self.max_limit)}
        )

    def select(
        self,
        records: list[VideoRecord],
        arguments: dict[str, Any]
    ) -> list[VideoRecord]:
        # sorted() is stable under reverse=True, so ties keep dataset order
        return sorted(
            records,
            key=lambda record: parse_timestamp(record.published_at) or _OLDEST,
            reverse=True
        )


class VideosByCategoryBackend(DatasetBackend):
    name = "videos_by_category"
    description = (
        "List videos in a category. A video matches when the category equals "
        "one of its tags or appears in its title."
    )

    @property
    def input_schema(self) -> dict[str, Any]:
        return object_schema(
            {
                "category": string_property("Category, e.g. highlights or rivalry"),
                "limit": limit_property(self.default_limit, self.max_limit),
            },
            required=["category"]
        )

    def select(
        self,
        records: list[VideoRecord],
        arguments: dict[str, Any]
    ) -> list[VideoRecord]:
        category = self._require_text(arguments, "category").lower()
        return [
            record for record in records
            if category in record.tags or category in record.title.lower()
        ]


def build_dataset_backends(
    settings: DatasetSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> list[ToolBackend]:
    """Create the dataset tools sharing one configured source."""
    source = DatasetSource(
        url=settings.csv_url,
        timeout=settings.timeout_seconds,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        transport=transport,
    )
    return [
        SearchVideosBackend(source, settings.search_limit, settings.max_limit),
        LatestVideosBackend(source, settings.latest_limit, settings.max_limit),
        VideosByCategoryBackend(source, settings.category_limit, settings.max_limit),
    ]


def register_dataset_tools(registry: "ToolRegistry", settings: DatasetSettings) -> None:
    """Register the dataset tools with the MCP server."""
    backends = build_dataset_backends(settings)
    for backend in backends:
        registry.register(backend)

    logger.info(
        "Dataset tools registered",
        tool_count=len(backends),
        source_configured=bool(settings.csv_url)
    )
