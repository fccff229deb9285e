"""
Pipeline orchestration for Web Ripper.

A request moves through strictly sequential stages::

    Requested -> Located | Archived -> ImagesInlined -> StyleReduced -> Assembled

Any unrecoverable error ends the request in ``Failed`` and reaches the caller
as a WebRipperError naming the stage. Requests share no mutable state apart
from the extraction mode, so many can run concurrently on one event loop.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple, Union

import aiohttp
import structlog

from webripper.archive import ArchiveAssembler, ArchiveDocument, ImageInliner, StyleReducer
from webripper.config import Config
from webripper.crawler import PageFetcher, normalize_url
from webripper.exceptions import PipelineError, WebRipperError
from webripper.extractor import (
    ContentLocator,
    ExternalArchiver,
    ExtractionMode,
    ExtractionModeManager,
    ExtractionRequest,
    ExtractionResult,
    HeuristicExtractor,
)
from webripper.extractor.locator import parse_html, visible_text
from webripper.observability import histogram, increment
from webripper.protocols import StorageProtocol, TaggerProtocol

logger = structlog.get_logger(__name__)


class PipelineStage(Enum):
    """Pipeline processing stages."""

    FETCH = "fetch"
    LOCATE = "location"
    IMAGES = "image_inlining"
    STYLES = "style_reduction"
    ASSEMBLE = "assembly"
    STORE = "storage"


class RequestState(Enum):
    """Lifecycle of a single extraction request."""

    REQUESTED = "requested"
    LOCATED = "located"
    ARCHIVED = "archived"
    IMAGES_INLINED = "images_inlined"
    STYLE_REDUCED = "style_reduced"
    ASSEMBLED = "assembled"
    FAILED = "failed"


class ArchivePipeline:
    """
    Turns a URL (and optionally its already-fetched HTML) into an ArchiveDocument.

    The pipeline owns its configuration and its collaborators; construct one
    per process (or per test) and pass it to callers explicitly.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        tagger: Optional[TaggerProtocol] = None,
        storage: Optional[StorageProtocol] = None,
    ) -> None:
        self.config = config or Config()
        self.session = session
        self._owns_session = session is None
        self.tagger = tagger
        self.storage = storage
        self.logger = logger.bind(component="ArchivePipeline")

        self.fetcher = PageFetcher(self.config.fetch, session)
        self.locator = ContentLocator(
            semantic_min_text_length=self.config.extraction.semantic_min_text_length,
            candidate_min_text_length=self.config.extraction.candidate_min_text_length,
        )
        self.heuristic = HeuristicExtractor(self.locator, page_source=self.fetcher.fetch)
        self.archiver = ExternalArchiver(self.config.archiver)
        self.modes = ExtractionModeManager(self.heuristic, self.archiver, mode=self.config.extraction.mode)
        self.inliner = ImageInliner(self.config.images, session)
        self.style_reducer = StyleReducer()
        self.assembler = ArchiveAssembler()

    async def initialize(self) -> None:
        """Open one HTTP session shared by page and image fetches."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
        self.fetcher.use_session(self.session)
        self.inliner.use_session(self.session)

    async def close(self) -> None:
        await self.fetcher.close()
        await self.inliner.close()
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()
        self.logger.info("Pipeline closed")

    async def __aenter__(self) -> "ArchivePipeline":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # --- Mode administration ---

    def get_extraction_mode(self) -> ExtractionMode:
        return self.modes.get_mode()

    def set_extraction_mode(self, mode: Union[str, ExtractionMode]) -> Dict[str, Any]:
        """Change the process-wide mode.

        Raises:
            UnsupportedModeError: ``mode`` is not supported
        """
        new_mode = self.modes.set_mode(mode)
        return {"success": True, "mode": new_mode.value}

    async def get_extraction_info(self) -> Dict[str, Any]:
        return await self.modes.get_extraction_info()

    # --- Extraction ---

    @contextmanager
    def _stage(self, stage: PipelineStage, url: str) -> Iterator[None]:
        started = time.monotonic()
        try:
            yield
        except WebRipperError as e:
            self.logger.error("Pipeline stage failed", url=url, stage=e.stage, state=RequestState.FAILED.value, error=str(e))
            raise
        except Exception as e:
            self.logger.error(
                "Pipeline stage failed",
                url=url,
                stage=stage.value,
                state=RequestState.FAILED.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PipelineError(stage.value, e) from e
        finally:
            histogram("stage_duration_seconds", time.monotonic() - started, labels={"stage": stage.value})

    async def _collect_tags(self, result: ExtractionResult, tags: Sequence[str]) -> Tuple[str, ...]:
        if self.tagger is None:
            return tuple(tags)
        try:
            text = visible_text(parse_html(result.content_markup))
            generated = await self.tagger.generate_tags(result.title, text, result.source_url, result.description)
        except Exception as e:
            # Tagging is optional; the archive is still produced without it.
            self.logger.warning("Tag generation failed", url=result.source_url, error=str(e))
            return tuple(tags)
        return tuple(generated)

    async def extract(
        self,
        url: str,
        raw_html: Optional[str] = None,
        *,
        tags: Sequence[str] = (),
        extracted_by: Optional[str] = None,
    ) -> ArchiveDocument:
        """Extract, inline, reduce and assemble one page.

        Args:
            url: Page URL; ``https://`` is assumed when no scheme is given
            raw_html: Already-fetched HTML of the page, if any
            tags: Caller-supplied tags echoed into the archive
            extracted_by: Optional name of the requesting user

        Returns:
            The finished ArchiveDocument

        Raises:
            WebRipperError: a stage failed; ``stage`` identifies which
        """
        with self._stage(PipelineStage.FETCH, url):
            url = normalize_url(url)

        with structlog.contextvars.bound_contextvars(request_url=url):
            mode = self.modes.get_mode()
            request = ExtractionRequest(url=url, raw_html=raw_html, mode=mode)
            self.logger.info("Extraction requested", url=url, mode=mode.value, state=RequestState.REQUESTED.value)

            try:
                with self._stage(PipelineStage.LOCATE, url):
                    result = await self.modes.extract(request)
                state = RequestState.ARCHIVED if result.extraction_method is ExtractionMode.EXTERNAL else RequestState.LOCATED
                self.logger.info("Content extracted", url=url, method=result.extraction_method.value, state=state.value)

                with self._stage(PipelineStage.IMAGES, url):
                    inlined = await self.inliner.inline(result.content_markup, result.source_url)
                self.logger.info(
                    "Images processed",
                    url=url,
                    inlined=inlined.inlined_count,
                    found=len(inlined.references),
                    state=RequestState.IMAGES_INLINED.value,
                )

                with self._stage(PipelineStage.STYLES, url):
                    reduced = self.style_reducer.reduce(inlined.markup)
                self.logger.debug("Styles reduced", url=url, state=RequestState.STYLE_REDUCED.value)

                user_tags = tuple(tags)
                generated = await self._collect_tags(result, user_tags)

                with self._stage(PipelineStage.ASSEMBLE, url):
                    document = self.assembler.assemble(
                        result,
                        reduced,
                        tags=generated,
                        user_tags=user_tags,
                        extracted_by=extracted_by,
                        extracted_at=datetime.now(timezone.utc),
                    )
            except WebRipperError:
                increment("extractions", labels={"method": mode.value, "outcome": "failure"})
                raise

            self.logger.info(
                "Extraction completed",
                url=url,
                title=document.title,
                word_count=document.word_count,
                image_count=document.image_count,
                state=RequestState.ASSEMBLED.value,
            )
            return document

    async def archive(
        self,
        url: str,
        raw_html: Optional[str] = None,
        *,
        tags: Sequence[str] = (),
        metadata: Optional[Dict[str, Any]] = None,
        extracted_by: Optional[str] = None,
        storage: Optional[StorageProtocol] = None,
    ) -> Tuple[ArchiveDocument, str]:
        """Extract ``url`` and hand the document to the storage collaborator.

        Returns:
            The document and the location reported by storage
        """
        target = storage or self.storage
        if target is None:
            raise ValueError("No storage collaborator configured")

        document = await self.extract(url, raw_html, tags=tags, extracted_by=extracted_by)
        with self._stage(PipelineStage.STORE, document.source_url):
            location = await target.store(document, document.to_metadata(metadata))
        self.logger.info("Archive stored", url=document.source_url, location=location)
        return document, location
