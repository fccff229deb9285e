"""
Data models for image inlining and the finished archive.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from ..utils import date_path, safe_filename

MAX_INLINE_BYTES = 5 * 1024 * 1024


@dataclass(slots=True, frozen=True)
class InlineImage:
    data: bytes
    mime_type: str

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


@dataclass(slots=True)
class ImageReference:
    """One ``<img>`` in extracted markup. Filled in once by the inliner."""

    index: int
    original_src: str
    resolved_url: Optional[str]
    inline_data: Optional[InlineImage] = None
    inlined: bool = False
    error: Optional[str] = None

    def mark_inlined(self, image: InlineImage, max_bytes: int = MAX_INLINE_BYTES) -> None:
        if len(image.data) > max_bytes:
            raise ValueError(f"Inline image exceeds {max_bytes} bytes")
        self.inline_data = image
        self.inlined = True

    def mark_failed(self, reason: str) -> None:
        self.error = reason
        self.inlined = False


@dataclass(slots=True, frozen=True)
class ArchiveDocument:
    """Final, self-contained archive handed to the caller."""

    html: str
    title: str
    description: str
    word_count: int
    image_count: int
    source_url: str
    extracted_at: datetime
    tags: Tuple[str, ...] = ()
    extraction_method: str = "heuristic"
    extracted_by: Optional[str] = None
    user_tags: Tuple[str, ...] = ()

    @property
    def domain(self) -> str:
        return urlparse(self.source_url).hostname or ""

    @property
    def safe_name(self) -> str:
        return safe_filename(self.title)

    @property
    def filename(self) -> str:
        return f"{self.safe_name}.html"

    @property
    def date_path(self) -> str:
        return date_path(self.extracted_at)

    def to_metadata(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Metadata blob stored alongside the document by the persistence collaborator."""
        metadata: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "url": self.source_url,
            "domain": self.domain,
            "extractedAt": self.extracted_at.isoformat(),
            "extractedBy": self.extracted_by,
            "extractionMethod": self.extraction_method,
            "wordCount": self.word_count,
            "imageCount": self.image_count,
            "tags": list(self.tags),
            "userTags": list(self.user_tags),
            "originalFilename": self.filename,
            "safeFilename": self.safe_name,
            "format": "html",
            "hasInlineImages": self.image_count > 0,
        }
        if extra:
            metadata.update(extra)
        return metadata
