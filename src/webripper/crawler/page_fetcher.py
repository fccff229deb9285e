"""
Fetches raw pages over HTTP for heuristic extraction.
"""

from __future__ import annotations

import asyncio
from typing import Optional
from urllib.parse import urlparse

import aiohttp
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config.config import FetchConfig
from ..exceptions import PageFetchError

logger = structlog.get_logger(__name__)

RETRY_STATUSES = {429, 500, 502, 503, 504}

PAGE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class _TransientFetchError(Exception):
    """A failure worth retrying."""


def normalize_url(url: str) -> str:
    """Trim ``url``, default its scheme to https and validate it.

    Raises:
        PageFetchError: the URL is empty, not http(s), or has no host
    """
    if not url or not url.strip():
        raise PageFetchError("URL is required")
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise PageFetchError(f"Invalid URL format: {url}")
    return candidate


class PageFetcher:
    """HTTP client for raw page HTML."""

    def __init__(self, config: FetchConfig, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.config = config
        self.session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
        return self.session

    def use_session(self, session: aiohttp.ClientSession) -> None:
        """Share a session owned by someone else."""
        self.session = session
        self._owns_session = False

    async def close(self) -> None:
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()

    async def _fetch_once(self, url: str) -> str:
        session = await self._get_session()
        headers = {"User-Agent": self.config.user_agent, **PAGE_HEADERS}
        try:
            async with session.get(
                url, headers=headers, timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            ) as response:
                if response.status in RETRY_STATUSES:
                    raise _TransientFetchError(f"HTTP {response.status}: {response.reason}")
                if not 200 <= response.status < 300:
                    raise PageFetchError(f"HTTP {response.status}: {response.reason}")
                return await response.text(errors="replace")
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise _TransientFetchError(f"{type(e).__name__}: {e}") from e

    async def fetch(self, url: str) -> str:
        """Fetch ``url`` and return its HTML.

        Raises:
            PageFetchError: non-2xx status, or transient failures exhausted retries
        """
        url = normalize_url(url)
        logger.info("Fetching page", url=url)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.config.max_retries + 1),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                retry=retry_if_exception_type(_TransientFetchError),
                reraise=True,
            ):
                with attempt:
                    return await self._fetch_once(url)
        except _TransientFetchError as e:
            logger.warning("Page fetch failed", url=url, error=str(e))
            raise PageFetchError(f"Failed to fetch {url}: {e}") from e
        except aiohttp.ClientError as e:
            logger.warning("Page fetch failed", url=url, error=str(e))
            raise PageFetchError(f"Failed to fetch {url}: {e}") from e
        raise PageFetchError(f"Failed to fetch {url}")
