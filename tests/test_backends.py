"""Tests for tool backends."""

import httpx
import pytest

from backends.base import BackendError


class TestRecordParsing:
    """Tests for CSV row normalization."""

    def test_extract_video_id(self):
        from backends.dataset.records import extract_video_id

        assert extract_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ") == "dQw4w9WgXcQ"
        assert extract_video_id("https://www.youtube.com/watch?feature=share&v=abc_12-3") == "abc_12-3"
        assert extract_video_id("https://youtu.be/xyz789?t=30") == "xyz789"
        assert extract_video_id("https://example.com/video") == ""
        assert extract_video_id("") == ""

    def test_derive_tags(self):
        from backends.dataset.records import derive_tags

        tags = derive_tags("Big play, big GAME!", "game-day highlights")

        assert tags == ["big", "play", "game", "gameday", "highlights"]

    def test_parse_timestamp(self):
        from backends.dataset.records import parse_timestamp

        assert parse_timestamp("2024-01-01T12:00:00Z").year == 2024
        assert parse_timestamp("2023-06-01").tzinfo is not None
        assert parse_timestamp("06/01/2023").month == 6
        assert parse_timestamp("not a date") is None
        assert parse_timestamp("") is None

    def test_loose_headers_and_empty_rows(self):
        from backends.dataset.records import parse_records

        text = "\ufeffVideo Title,Link,Upload-Date,Keywords\nA,https://youtu.be/a1,2024-02-02,Ducks\n,,,\nB\n"

        records = parse_records(text)

        assert [r.title for r in records] == ["A", "B"]
        assert records[0].id == "a1"
        assert records[0].published_at == "2024-02-02"
        assert records[0].tags == ["ducks"]
        assert records[1].url == ""

    def test_oversized_row_is_skipped(self):
        from backends.dataset.records import parse_records

        text = (
            "title,description\n"
            "Rivalry One,good\n"
            "Rivalry Broken," + "x" * 200_000 + "\n"
            "Rivalry Two,fine\n"
        )

        records = parse_records(text)

        assert [r.title for r in records] == ["Rivalry One", "Rivalry Two"]


class TestDatasetTools:
    """Tests for the dataset-backed tools."""

    def _source(self, path):
        from backends.dataset import DatasetSource

        return DatasetSource(str(path))

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, dataset_csv):
        from backends.dataset import SearchVideosBackend

        backend = SearchVideosBackend(self._source(dataset_csv))

        for query in ["Gabriel", "gabriel"]:
            results = await backend.invoke({"query": query})
            assert [r["title"] for r in results] == ["Dillon Gabriel Touchdown"]

    @pytest.mark.asyncio
    async def test_search_matches_tags(self, dataset_csv):
        from backends.dataset import SearchVideosBackend

        backend = SearchVideosBackend(self._source(dataset_csv))

        results = await backend.invoke({"query": "oregon"})

        assert [r["id"] for r in results] == ["dg1"]

    @pytest.mark.asyncio
    async def test_record_without_id_is_kept(self, dataset_csv):
        from backends.dataset import SearchVideosBackend

        backend = SearchVideosBackend(self._source(dataset_csv))

        results = await backend.invoke({"query": "mystery"})

        assert len(results) == 1
        assert results[0]["id"] == ""
        assert results[0]["url"] == "https://example.com/clip"

    @pytest.mark.asyncio
    async def test_latest_orders_by_date_with_unparseable_last(self, dataset_csv):
        from backends.dataset import LatestVideosBackend

        backend = LatestVideosBackend(self._source(dataset_csv))

        results = await backend.invoke({})

        assert [r["publishedAt"] for r in results] == [
            "2024-01-01T12:00:00Z",
            "2023-06-01",
            "not a date",
        ]

    @pytest.mark.asyncio
    async def test_category_matches_tag_or_title(self, dataset_csv):
        from backends.dataset import VideosByCategoryBackend

        backend = VideosByCategoryBackend(self._source(dataset_csv))

        assert [r["id"] for r in await backend.invoke({"category": "Highlights"})] == ["dg1"]
        assert [r["id"] for r in await backend.invoke({"category": "recap"})] == ["rec2"]
        assert await backend.invoke({"category": "baseball"}) == []

    @pytest.mark.asyncio
    async def test_limit_default_and_cap(self, rivalry_csv):
        from backends.dataset import LatestVideosBackend

        source = self._source(rivalry_csv)

        assert len(await LatestVideosBackend(source, default_limit=4).invoke({})) == 4
        assert len(await LatestVideosBackend(source, max_limit=3).invoke({"limit": 10})) == 3

        with pytest.raises(BackendError, match="at least 1"):
            await LatestVideosBackend(source).invoke({"limit": 0})

    @pytest.mark.asyncio
    async def test_blank_query_is_rejected(self, dataset_csv):
        from backends.dataset import SearchVideosBackend

        backend = SearchVideosBackend(self._source(dataset_csv))

        with pytest.raises(BackendError, match="non-empty"):
            await backend.invoke({"query": "   "})

    @pytest.mark.asyncio
    async def test_unconfigured_source(self):
        from backends.dataset import DatasetSource

        with pytest.raises(BackendError, match="not configured"):
            await DatasetSource(None).load()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        from backends.dataset import DatasetSource

        with pytest.raises(BackendError, match="could not be read"):
            await DatasetSource(str(tmp_path / "missing.csv")).load()

    @pytest.mark.asyncio
    async def test_file_that_is_not_utf8(self, tmp_path):
        from backends.dataset import DatasetSource

        path = tmp_path / "latin1.csv"
        path.write_bytes(b"title\nCaf\xe9\n")

        with pytest.raises(BackendError, match="not valid UTF-8"):
            await DatasetSource(str(path)).load()

    @pytest.mark.asyncio
    async def test_search_survives_oversized_row(self, tmp_path):
        from backends.dataset import SearchVideosBackend

        path = tmp_path / "videos.csv"
        path.write_text(
            "title,description\nRivalry One,good\nRivalry Broken,"
            + "x" * 200_000
            + "\nRivalry Two,fine\n",
            encoding="utf-8",
        )

        results = await SearchVideosBackend(self._source(path)).invoke({"query": "rivalry"})

        assert [r["title"] for r in results] == ["Rivalry One", "Rivalry Two"]

    @pytest.mark.asyncio
    async def test_integral_float_limit(self, rivalry_csv):
        from backends.dataset import LatestVideosBackend

        results = await LatestVideosBackend(self._source(rivalry_csv)).invoke({"limit": 3.0})

        assert len(results) == 3


class TestRemoteDataset:
    """Tests for fetching the dataset over HTTP."""

    @pytest.mark.asyncio
    async def test_reloads_without_cache(self):
        from backends.dataset import DatasetSource

        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="title,url\nClip,https://youtu.be/c1\n")

        source = DatasetSource("https://data.example/videos.csv", transport=httpx.MockTransport(handler))

        await source.load()
        records = await source.load()

        assert len(calls) == 2
        assert records[0].id == "c1"

    @pytest.mark.asyncio
    async def test_ttl_cache(self):
        from backends.dataset import DatasetSource

        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="title,url\nClip,https://youtu.be/c1\n")

        source = DatasetSource(
            "https://data.example/videos.csv",
            cache_ttl_seconds=60,
            transport=httpx.MockTransport(handler),
        )

        first = await source.load()
        second = await source.load()

        assert len(calls) == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        from backends.dataset import DatasetSource

        source = DatasetSource(
            "https://data.example/videos.csv",
            transport=httpx.MockTransport(lambda request: httpx.Response(404)),
        )

        with pytest.raises(BackendError) as exc_info:
            await source.load()

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "dataset source returned HTTP 404"


SEARCH_PAYLOAD = {
    "items": [
        {
            "id": {"kind": "youtube#video", "videoId": "v1"},
            "snippet": {
                "title": "Oregon Ducks",
                "description": "Game day!",
                "publishedAt": "2024-01-01T00:00:00Z",
            },
        },
        {"id": {"kind": "youtube#video"}, "snippet": {}},
        {
            "id": {"kind": "youtube#video", "videoId": "v2"},
            "snippet": {"title": "Second", "tags": ["Pac-12"]},
        },
    ]
}


class TestYouTubeTools:
    """Tests for the YouTube Data API tools."""

    @pytest.mark.asyncio
    async def test_search(self):
        from backends.youtube import YouTubeSearchBackend

        def handler(request):
            assert request.url.path == "/youtube/v3/search"
            assert request.url.params["q"] == "oregon"
            assert request.url.params["key"] == "yt-key"
            assert request.url.params["maxResults"] == "5"
            return httpx.Response(200, json=SEARCH_PAYLOAD)

        backend = YouTubeSearchBackend(api_key="yt-key", transport=httpx.MockTransport(handler))

        results = await backend.invoke({"query": "oregon", "limit": 5})

        assert results == [
            {
                "id": "v1",
                "title": "Oregon Ducks",
                "url": "https://www.youtube.com/watch?v=v1",
                "publishedAt": "2024-01-01T00:00:00Z",
                "tags": ["game", "day"],
            },
            {
                "id": "v2",
                "title": "Second",
                "url": "https://www.youtube.com/watch?v=v2",
                "publishedAt": "",
                "tags": ["pac12"],
            },
        ]

    @pytest.mark.asyncio
    async def test_get_video(self):
        from backends.youtube import YouTubeVideoBackend

        def handler(request):
            assert request.url.path == "/youtube/v3/videos"
            assert request.url.params["id"] == "v9"
            return httpx.Response(200, json={"items": [{"id": "v9", "snippet": {"title": "Nine"}}]})

        backend = YouTubeVideoBackend(api_key="yt-key", transport=httpx.MockTransport(handler))

        results = await backend.invoke({"videoId": "v9"})

        assert [r["id"] for r in results] == ["v9"]

    @pytest.mark.asyncio
    async def test_get_unknown_video(self):
        from backends.youtube import YouTubeVideoBackend

        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"items": []}))
        backend = YouTubeVideoBackend(api_key="yt-key", transport=transport)

        assert await backend.invoke({"videoId": "nope"}) == []

    @pytest.mark.asyncio
    async def test_upstream_error_status(self):
        from backends.youtube import YouTubeSearchBackend

        transport = httpx.MockTransport(lambda request: httpx.Response(403, json={"error": {}}))
        backend = YouTubeSearchBackend(api_key="yt-key", transport=transport)

        with pytest.raises(BackendError) as exc_info:
            await backend.invoke({"query": "ducks"})

        assert exc_info.value.status_code == 403
        assert "yt-key" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        from backends.youtube import YouTubeSearchBackend

        backend = YouTubeSearchBackend(api_key=None)

        with pytest.raises(BackendError, match="API key is not configured"):
            await backend.invoke({"query": "ducks"})

    @pytest.mark.asyncio
    async def test_timeout(self):
        from backends.youtube import YouTubeSearchBackend

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        backend = YouTubeSearchBackend(
            api_key="yt-key",
            timeout=2.0,
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(BackendError, match="timed out after 2.0s"):
            await backend.invoke({"query": "ducks"})

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        from backends.youtube import YouTubeSearchBackend

        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        backend = YouTubeSearchBackend(api_key="yt-key", transport=transport)

        with pytest.raises(BackendError, match="non-JSON"):
            await backend.invoke({"query": "ducks"})


class TestKeepalive:
    """Tests for the keepalive ping."""

    def test_disabled_without_url(self):
        from mcp_server.keepalive import KeepaliveTask
        from shared.config import KeepaliveSettings

        assert KeepaliveTask.from_settings(KeepaliveSettings(url=None)) is None

    @pytest.mark.asyncio
    async def test_ping_success(self):
        from mcp_server.keepalive import KeepaliveTask

        task = KeepaliveTask(
            "https://service.example/health",
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )

        assert await task.ping() is True

    @pytest.mark.asyncio
    async def test_ping_retries_then_gives_up(self):
        from mcp_server.keepalive import KeepaliveTask

        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        task = KeepaliveTask(
            "https://service.example/health",
            attempts=3,
            backoff_seconds=0,
            transport=httpx.MockTransport(handler),
        )

        assert await task.ping() is False
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        from mcp_server.keepalive import KeepaliveTask

        task = KeepaliveTask("https://service.example/health", interval_seconds=60)

        task.start()
        assert task.running

        await task.stop()
        assert not task.running
