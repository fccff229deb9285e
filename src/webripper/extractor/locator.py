"""
Heuristic main-content location over a parsed HTML document.

Location runs in two steps. Semantic containers (``main``, ``article``,
``[role="main"]`` and common content class/id names) are trusted first; when
none carries enough text, every block container is scored by text length,
link density and paragraph count and the best one wins. The document body is
the last resort, so location only fails for documents with no markup at all.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

import structlog
from bs4 import BeautifulSoup, Tag

from ..exceptions import LocationFailure
from .models import ContentCandidate

logger = structlog.get_logger(__name__)

PARSER = "html.parser"

# Removed document-wide before any scoring.
NON_CONTENT_SELECTORS: Sequence[str] = (
    "script",
    "style",
    "noscript",
    "nav",
    "header",
    "footer",
    "aside",
    ".advertisement",
    ".ads",
    ".social-share",
    ".comments",
)

SEMANTIC_SELECTORS: Sequence[str] = (
    "main",
    "article",
    '[role="main"]',
    ".main-content",
    ".post-content",
    ".entry-content",
    ".article-content",
    ".content",
    "#content",
    ".post-body",
    ".article-body",
)

CANDIDATE_TAGS: Sequence[str] = ("div", "section", "article")


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, PARSER)


def visible_text(node: Tag) -> str:
    """Whitespace-normalised text of a subtree."""
    return " ".join(node.get_text(" ").split())


def count_words(text: str) -> int:
    return len(text.split())


def _non_space_length(text: str) -> int:
    return sum(1 for ch in text if not ch.isspace())


def remove_elements(soup: BeautifulSoup, selectors: Iterable[str]) -> int:
    """Remove every element matching ``selectors``.

    Matches are collected first and applied afterwards. Elements nested in an
    element that is already scheduled for removal are skipped.

    Returns:
        Number of subtrees removed
    """
    scheduled: List[Tag] = []
    seen: set[int] = set()
    for selector in selectors:
        for element in soup.select(selector):
            if id(element) not in seen:
                seen.add(id(element))
                scheduled.append(element)

    roots = [el for el in scheduled if not any(id(parent) in seen for parent in el.parents)]
    for element in roots:
        element.decompose()
    return len(roots)


def extract_title(soup: BeautifulSoup, default: str = "Untitled") -> str:
    title_tag = soup.find("title")
    if title_tag:
        title = title_tag.get_text(strip=True)
        if title:
            return title
    h1 = soup.find("h1")
    if h1:
        heading = h1.get_text(" ", strip=True)
        if heading:
            return heading
    return default


def extract_description(soup: BeautifulSoup) -> str:
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            return str(meta["content"]).strip()
    return ""


def find_semantic_container(soup: BeautifulSoup, min_text_length: Optional[int] = None) -> Optional[Tag]:
    """Return the first semantic container, in selector order.

    With ``min_text_length`` set, a container is only accepted when its visible
    text is longer than that many characters.
    """
    for selector in SEMANTIC_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        if min_text_length is None or len(visible_text(element)) > min_text_length:
            return element
    return None


def score_candidate(node: Tag) -> ContentCandidate:
    """Score a container as ``textLength * (1 - linkDensity) * ln(paragraphs + 1)``."""
    text = visible_text(node)
    text_length = len(text)

    link_chars = sum(_non_space_length(a.get_text()) for a in node.find_all("a"))
    link_density = min(link_chars / max(_non_space_length(text), 1), 1.0)
    paragraph_count = len(node.find_all("p"))

    score = text_length * (1.0 - link_density) * math.log(paragraph_count + 1)
    return ContentCandidate(
        node=node,
        text_length=text_length,
        link_density=link_density,
        paragraph_count=paragraph_count,
        score=score,
    )


class ContentLocator:
    """Finds the subtree most likely to be the article body."""

    def __init__(self, semantic_min_text_length: int = 100, candidate_min_text_length: int = 200) -> None:
        self.semantic_min_text_length = semantic_min_text_length
        self.candidate_min_text_length = candidate_min_text_length

    def strip_non_content(self, soup: BeautifulSoup) -> int:
        return remove_elements(soup, NON_CONTENT_SELECTORS)

    def candidates(self, soup: BeautifulSoup) -> List[ContentCandidate]:
        """Score every block container with enough text, in document order."""
        scored = []
        for node in soup.find_all(list(CANDIDATE_TAGS)):
            candidate = score_candidate(node)
            if candidate.text_length < self.candidate_min_text_length:
                continue
            scored.append(candidate)
        return scored

    def best_candidate(self, soup: BeautifulSoup) -> Optional[ContentCandidate]:
        best: Optional[ContentCandidate] = None
        for candidate in self.candidates(soup):
            # Strict comparison keeps the first-seen candidate on ties.
            if candidate.score > 0 and (best is None or candidate.score > best.score):
                best = candidate
        return best

    def locate(self, soup: BeautifulSoup) -> Tag:
        """Strip non-content elements and return the main-content subtree.

        Raises:
            LocationFailure: the document contains no markup at all
        """
        if soup.find() is None and not soup.get_text(strip=True):
            raise LocationFailure("document is empty")

        removed = self.strip_non_content(soup)

        semantic = find_semantic_container(soup, self.semantic_min_text_length)
        if semantic is not None:
            logger.debug("Located content by semantic selector", tag=semantic.name, removed=removed)
            return semantic

        best = self.best_candidate(soup)
        if best is not None:
            logger.debug(
                "Located content by scoring",
                tag=best.node.name,
                score=round(best.score, 2),
                text_length=best.text_length,
                link_density=round(best.link_density, 3),
            )
            return best.node

        logger.debug("No qualifying container, using document body")
        return soup.body or soup
