"""
Embeds the images referenced by extracted markup as ``data:`` URIs.

All images of one page are fetched concurrently through a bounded pool and
awaited together. A failed image keeps its original remote reference and
never affects the others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import aiohttp
import structlog
from bs4 import Tag

from ..config.config import ImageConfig
from ..exceptions import ImageFetchFailure
from ..extractor.locator import parse_html
from ..observability import increment
from .models import ImageReference, InlineImage

logger = structlog.get_logger(__name__)

IMAGE_HEADERS = {
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

CHUNK_SIZE = 64 * 1024


def is_self_contained(src: str) -> bool:
    return src.strip().lower().startswith("data:")


@dataclass
class InlineResult:
    markup: str
    references: List[ImageReference]

    @property
    def inlined_count(self) -> int:
        return sum(1 for ref in self.references if ref.inlined)


class _ByteBudget:
    """Embedded bytes still allowed for one page."""

    def __init__(self, limit: int) -> None:
        self.remaining = limit

    def reserve(self, size: int) -> bool:
        # Single event loop, no await between check and update.
        if size > self.remaining:
            return False
        self.remaining -= size
        return True


class ImageInliner:
    """Fetches and embeds raster images for one page at a time."""

    def __init__(self, config: ImageConfig, session: Optional[aiohttp.ClientSession] = None) -> None:
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

    def collect(self, soup, base_url: str) -> List[Tuple[Tag, ImageReference]]:
        """First pass: one reference per ``<img>`` that still points at a remote resource."""
        found: List[Tuple[Tag, ImageReference]] = []
        for index, img in enumerate(soup.find_all("img")):
            src = (img.get("src") or "").strip()
            if not src or is_self_contained(src):
                continue
            resolved: Optional[str] = urljoin(base_url, src)
            if urlparse(resolved).scheme not in ("http", "https"):
                resolved = None
            found.append((img, ImageReference(index=index, original_src=src, resolved_url=resolved)))
        return found

    async def _download(self, url: str, budget: _ByteBudget) -> InlineImage:
        session = await self._get_session()
        headers = {"User-Agent": self.config.user_agent, **IMAGE_HEADERS}
        max_bytes = self.config.max_image_bytes

        async with session.get(url, headers=headers, timeout=aiohttp.ClientTimeout(total=self.config.timeout)) as response:
            if not 200 <= response.status < 300:
                raise ImageFetchFailure(f"HTTP {response.status}")

            content_type = response.headers.get("Content-Type", "")
            mime_type = content_type.split(";", 1)[0].strip().lower()
            if not mime_type.startswith("image/"):
                raise ImageFetchFailure(f"Invalid image content type: {content_type or 'missing'}")

            declared = response.content_length
            if declared is not None and declared > max_bytes:
                raise ImageFetchFailure(f"Image too large: {declared} bytes")

            data = bytearray()
            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                data.extend(chunk)
                if len(data) > max_bytes:
                    raise ImageFetchFailure(f"Image too large: more than {max_bytes} bytes")

        if not budget.reserve(len(data)):
            raise ImageFetchFailure("Page image byte budget exhausted")
        return InlineImage(data=bytes(data), mime_type=mime_type)

    async def _process(self, ref: ImageReference, semaphore: asyncio.Semaphore, budget: _ByteBudget) -> None:
        if ref.resolved_url is None:
            ref.mark_failed("Unsupported image URL scheme")
            increment("images", labels={"outcome": "skipped"})
            return

        async with semaphore:
            try:
                image = await self._download(ref.resolved_url, budget)
                ref.mark_inlined(image, self.config.max_image_bytes)
            except ImageFetchFailure as e:
                ref.mark_failed(str(e))
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                ref.mark_failed(f"{type(e).__name__}: {e}")
            except Exception as e:
                # Per-image failures never escalate
                ref.mark_failed(f"Unexpected {type(e).__name__}: {e}")

        if ref.inlined:
            increment("images", labels={"outcome": "inlined"})
            logger.debug("Image inlined", url=ref.resolved_url, size_kb=round(len(ref.inline_data.data) / 1024))
        else:
            increment("images", labels={"outcome": "rejected"})
            logger.warning("Keeping original image reference", url=ref.resolved_url, reason=ref.error)

    async def inline(self, markup: str, base_url: str) -> InlineResult:
        """Embed every remote image of ``markup``, resolving against ``base_url``."""
        loop = asyncio.get_running_loop()
        soup = await loop.run_in_executor(None, parse_html, markup)
        found = self.collect(soup, base_url)
        if not found:
            return InlineResult(markup=markup, references=[])

        logger.info("Inlining images", url=base_url, count=len(found))
        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        budget = _ByteBudget(self.config.max_total_bytes)
        await asyncio.gather(*(self._process(ref, semaphore, budget) for _, ref in found))

        # Second pass: apply the rewrites decided above.
        hostname = urlparse(base_url).hostname or "source"
        for img, ref in found:
            if not ref.inlined or ref.inline_data is None:
                continue
            img["src"] = ref.inline_data.to_data_uri()
            if img.has_attr("srcset"):
                del img["srcset"]
            if not img.get("alt"):
                img["alt"] = f"Image {ref.index + 1} from {hostname}"

        references = [ref for _, ref in found]
        inlined = sum(1 for ref in references if ref.inlined)
        logger.info("Image inlining finished", url=base_url, inlined=inlined, failed=len(references) - inlined)
        return InlineResult(markup=await loop.run_in_executor(None, soup.decode), references=references)
