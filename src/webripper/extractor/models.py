"""
Data models for extraction requests and results.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ExtractionMode(str, Enum):
    """Strategy used to turn a page into content markup."""

    HEURISTIC = "heuristic"
    EXTERNAL = "external"


SUPPORTED_MODES: tuple[ExtractionMode, ...] = (ExtractionMode.HEURISTIC, ExtractionMode.EXTERNAL)


@dataclass(slots=True, frozen=True)
class ExtractionRequest:
    """A single page to extract."""

    url: str
    raw_html: Optional[str] = None
    mode: ExtractionMode = ExtractionMode.HEURISTIC


@dataclass(slots=True, frozen=True)
class ContentCandidate:
    """A scored subtree considered during heuristic location."""

    node: Any
    text_length: int
    link_density: float
    paragraph_count: int
    score: float

    def __post_init__(self) -> None:
        if not (0.0 <= self.link_density <= 1.0):
            raise ValueError("link_density must be between 0.0 and 1.0")


@dataclass(slots=True, frozen=True)
class ExtractionResult:
    """Result of locating the main content of a page."""

    title: str
    description: str
    content_markup: str
    word_count: int
    image_count: int
    extraction_method: ExtractionMode
    source_url: str
