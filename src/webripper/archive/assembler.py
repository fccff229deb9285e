"""
Wraps reduced content in the archival document shell.
"""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape
from typing import Iterable, Optional, Sequence, Tuple
from urllib.parse import urlparse

import structlog

from ..exceptions import AssemblyFailure
from ..extractor.locator import count_words, parse_html, visible_text
from ..extractor.models import ExtractionResult
from .image_inliner import is_self_contained
from .models import ArchiveDocument

logger = structlog.get_logger(__name__)

GENERATOR = "Web Ripper"


def content_statistics(markup: str) -> Tuple[int, int]:
    """Word count of the visible text and number of embedded images in ``markup``."""
    soup = parse_html(markup)
    word_count = count_words(visible_text(soup))
    image_count = sum(1 for img in soup.find_all("img") if is_self_contained(img.get("src") or ""))
    return word_count, image_count


def _dedupe(tags: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(seen)


def render_shell(
    *,
    title: str,
    description: str,
    url: str,
    content: str,
    extracted_at: datetime,
    word_count: int,
    image_count: int,
    tags: Sequence[str] = (),
    user_tags: Sequence[str] = (),
    extracted_by: Optional[str] = None,
) -> str:
    hostname = urlparse(url).hostname or url
    display_date = f"{extracted_at:%B} {extracted_at.day}, {extracted_at.year}"
    iso_date = extracted_at.isoformat()
    safe_title = escape(title)
    safe_url = escape(url, quote=True)

    keywords = f'\n    <meta name="keywords" content="{escape(", ".join(tags), quote=True)}">' if tags else ""
    blockquote = f"\n            <blockquote>{escape(description)}</blockquote>\n" if description else ""

    details = [
        f'<strong>Source:</strong> <a href="{safe_url}" target="_blank">{escape(hostname)}</a>',
        f"<strong>Extracted:</strong> {display_date}",
    ]
    if extracted_by:
        details.append(f"<strong>By:</strong> {escape(extracted_by)}")
    if word_count:
        details.append(f"<strong>Words:</strong> {word_count:,}")
    if image_count:
        details.append(f"<strong>Images:</strong> {image_count}")
    details_html = "<br>\n                ".join(details)

    tags_html = f"\n            <p>\n                <strong>Tags:</strong> {escape(', '.join(tags))}\n            </p>\n" if tags else ""
    user_tags_html = f"User Tags: {escape(', '.join(user_tags))}<br>\n                " if user_tags else ""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{safe_title}</title>
    <meta name="description" content="{escape(description, quote=True)}">
    <meta name="generator" content="{GENERATOR}">
    <meta name="extracted-date" content="{iso_date}">
    <meta name="source-url" content="{safe_url}">{keywords}
</head>
<body>
    <article>
        <header>
            <h1>{safe_title}</h1>
{blockquote}
            <p>
                {details_html}
            </p>
{tags_html}
            <hr>
        </header>

        <main>
{content}
        </main>

        <footer>
            <hr>
            <p>
                <strong>Extracted by {GENERATOR}</strong><br>
                Original URL: <a href="{safe_url}" target="_blank">{safe_url}</a><br>
                Extraction Date: {iso_date}<br>
                {user_tags_html}Format: Plain HTML with inlined images (layout CSS removed)
            </p>
        </footer>
    </article>
</body>
</html>"""


class ArchiveAssembler:
    """Builds the final ArchiveDocument from reduced content markup."""

    def assemble(
        self,
        result: ExtractionResult,
        content: str,
        *,
        tags: Sequence[str] = (),
        user_tags: Sequence[str] = (),
        extracted_by: Optional[str] = None,
        extracted_at: Optional[datetime] = None,
    ) -> ArchiveDocument:
        """Count what the archive actually contains and render the shell.

        Raises:
            AssemblyFailure: the document could not be rendered
        """
        extracted_at = extracted_at or datetime.now(timezone.utc)
        all_tags = _dedupe([*user_tags, *tags])
        try:
            word_count, image_count = content_statistics(content)
            html = render_shell(
                title=result.title,
                description=result.description,
                url=result.source_url,
                content=content,
                extracted_at=extracted_at,
                word_count=word_count,
                image_count=image_count,
                tags=all_tags,
                user_tags=_dedupe(user_tags),
                extracted_by=extracted_by,
            )
        except Exception as e:
            raise AssemblyFailure(f"Failed to generate HTML: {e}") from e

        logger.info(
            "Archive assembled",
            url=result.source_url,
            title=result.title,
            word_count=word_count,
            image_count=image_count,
            method=result.extraction_method.value,
        )
        return ArchiveDocument(
            html=html,
            title=result.title,
            description=result.description,
            word_count=word_count,
            image_count=image_count,
            source_url=result.source_url,
            extracted_at=extracted_at,
            tags=all_tags,
            extraction_method=result.extraction_method.value,
            extracted_by=extracted_by,
            user_tags=_dedupe(user_tags),
        )
