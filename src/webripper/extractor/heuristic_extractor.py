"""
BeautifulSoup-based heuristic extractor. Always available.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from .locator import ContentLocator, count_words, extract_description, extract_title, parse_html, visible_text
from .models import ExtractionMode, ExtractionRequest, ExtractionResult

logger = structlog.get_logger(__name__)

PageSource = Callable[[str], Awaitable[str]]


class HeuristicExtractor:
    """Extractor that scores the already-fetched page in process."""

    name = "heuristic"

    def __init__(self, locator: Optional[ContentLocator] = None, page_source: Optional[PageSource] = None) -> None:
        self.locator = locator or ContentLocator()
        self.page_source = page_source

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        html = request.raw_html
        if html is None:
            if self.page_source is None:
                raise ValueError("Request has no raw HTML and no page source is configured")
            html = await self.page_source(request.url)

        # Parsing and scoring is CPU-bound
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._extract_sync, html, request.url)

    def _extract_sync(self, html: str, url: str) -> ExtractionResult:
        soup = parse_html(html)

        title = extract_title(soup)
        description = extract_description(soup)

        main_content = self.locator.locate(soup)
        content = main_content.decode_contents()
        word_count = count_words(visible_text(main_content))
        image_count = len(main_content.find_all("img"))

        logger.info(
            "Heuristic extraction completed",
            url=url,
            title=title,
            word_count=word_count,
            image_count=image_count,
        )

        return ExtractionResult(
            title=title,
            description=description,
            content_markup=content,
            word_count=word_count,
            image_count=image_count,
            extraction_method=ExtractionMode.HEURISTIC,
            source_url=url,
        )
