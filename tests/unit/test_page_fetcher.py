"""
Tests for raw page fetching.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from aioresponses import aioresponses
from webripper.config import FetchConfig
from webripper.crawler import PageFetcher, normalize_url
from webripper.exceptions import PageFetchError


@pytest_asyncio.fixture
async def fetcher():
    fetcher = PageFetcher(FetchConfig(timeout=2.0, max_retries=2))
    yield fetcher
    await fetcher.close()


@pytest.mark.unit
class TestNormalizeUrl:
    def test_scheme_defaults_to_https(self):
        assert normalize_url("  example.com/post ") == "https://example.com/post"

    def test_http_kept(self):
        assert normalize_url("http://example.com") == "http://example.com"

    @pytest.mark.parametrize("url", ["", "   ", "ftp://example.com/file", "https://", "javascript://alert(1)"])
    def test_invalid_urls_rejected(self, url):
        with pytest.raises(PageFetchError) as exc_info:
            normalize_url(url)
        assert exc_info.value.stage == "fetch"


@pytest.mark.unit
class TestPageFetcher:
    @pytest.mark.asyncio
    async def test_fetch_success(self, fetcher):
        with aioresponses() as m:
            m.get("https://example.com/post", status=200, body="<html>ok</html>", content_type="text/html")
            html = await fetcher.fetch("example.com/post")

        assert html == "<html>ok</html>"

    @pytest.mark.asyncio
    async def test_sends_user_agent(self, fetcher):
        with aioresponses() as m:
            m.get("https://example.com/post", status=200, body="ok", content_type="text/html")
            await fetcher.fetch("https://example.com/post")

        [calls] = m.requests.values()
        assert calls[0].kwargs["headers"]["User-Agent"] == fetcher.config.user_agent

    @pytest.mark.asyncio
    async def test_retry_on_503_then_success(self, fetcher):
        with aioresponses() as m:
            m.get("https://example.com/post", status=503)
            m.get("https://example.com/post", status=200, body="recovered", content_type="text/html")
            html = await fetcher.fetch("https://example.com/post")

        assert html == "recovered"

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, fetcher):
        with aioresponses() as m:
            m.get("https://example.com/post", status=503, repeat=True)
            with pytest.raises(PageFetchError) as exc_info:
                await fetcher.fetch("https://example.com/post")

        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, fetcher):
        with aioresponses() as m:
            m.get("https://example.com/missing", status=404)
            m.get("https://example.com/missing", status=200, body="should not be reached")
            with pytest.raises(PageFetchError) as exc_info:
                await fetcher.fetch("https://example.com/missing")

        assert "404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_errors_become_fetch_errors(self, fetcher):
        with aioresponses():
            with pytest.raises(PageFetchError):
                await fetcher.fetch("https://unreachable.example.com/")
