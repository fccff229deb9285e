"""
ExtractionModeManager: selects the extraction strategy and owns the fallback.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Union

import structlog

from ..exceptions import UnsupportedModeError
from ..observability import increment
from .external_archiver import ExternalArchiver
from .models import SUPPORTED_MODES, ExtractionMode, ExtractionRequest, ExtractionResult
from .protocols import Extractor

logger = structlog.get_logger(__name__)


def coerce_mode(mode: Union[str, ExtractionMode]) -> ExtractionMode:
    """Convert ``mode`` to an ExtractionMode.

    Raises:
        UnsupportedModeError: ``mode`` is not one of the supported modes
    """
    try:
        return ExtractionMode(mode)
    except ValueError:
        supported = ", ".join(m.value for m in SUPPORTED_MODES)
        raise UnsupportedModeError(f"Unsupported extraction mode: {mode}. Supported modes: {supported}") from None


class ExtractionModeManager:
    """
    Routes requests to the heuristic extractor or the external archiving tool.

    The current mode is process-wide and changes rarely; it is read once, under
    a lock, at the start of each request. Any failure of the external tool,
    including errors while parsing its output, triggers a single retry of the
    same request with the heuristic extractor.
    """

    def __init__(
        self,
        heuristic: Extractor,
        external: ExternalArchiver,
        mode: Union[str, ExtractionMode] = ExtractionMode.HEURISTIC,
    ) -> None:
        self.heuristic = heuristic
        self.external = external
        self._mode = coerce_mode(mode)
        self._lock = threading.Lock()
        self.logger = logger.bind(component="ExtractionModeManager")

    def get_mode(self) -> ExtractionMode:
        with self._lock:
            return self._mode

    def set_mode(self, mode: Union[str, ExtractionMode]) -> ExtractionMode:
        """Switch the mode. Availability is not checked here."""
        new_mode = coerce_mode(mode)
        with self._lock:
            previous, self._mode = self._mode, new_mode
        self.logger.info("Extraction mode changed", previous=previous.value, mode=new_mode.value)
        return new_mode

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        """Extract ``request`` with its mode, falling back to heuristic once."""
        if request.mode is ExtractionMode.HEURISTIC:
            result = await self.heuristic.extract(request)
            increment("extractions", labels={"method": "heuristic", "outcome": "success"})
            return result

        if not await self.external.is_available():
            self.logger.warning("External tool not available, falling back to heuristic", url=request.url)
            increment("mode_fallbacks", labels={"reason": "unavailable"})
            return await self._fallback(request)

        try:
            result = await self.external.extract(request)
        except Exception as e:
            self.logger.warning(
                "External extraction failed, falling back to heuristic",
                url=request.url,
                error=str(e),
                error_type=type(e).__name__,
            )
            increment("extractions", labels={"method": "external", "outcome": "failure"})
            increment("mode_fallbacks", labels={"reason": type(e).__name__})
            return await self._fallback(request)

        increment("extractions", labels={"method": "external", "outcome": "success"})
        return result

    async def _fallback(self, request: ExtractionRequest) -> ExtractionResult:
        fallback_request = ExtractionRequest(url=request.url, raw_html=request.raw_html, mode=ExtractionMode.HEURISTIC)
        result = await self.heuristic.extract(fallback_request)
        increment("extractions", labels={"method": "heuristic", "outcome": "fallback"})
        return result

    async def get_extraction_info(self) -> Dict[str, Any]:
        """Current mode, supported modes, and availability details per mode."""
        archiver_info = await self.external.get_info()
        return {
            "currentMode": self.get_mode().value,
            "supportedModes": [m.value for m in SUPPORTED_MODES],
            "modes": {
                ExtractionMode.HEURISTIC.value: {
                    "available": True,
                    "description": "Built-in extraction with semantic selectors and text-density scoring",
                    "features": ["Fast", "Lightweight", "No external dependencies"],
                    "performance": "High",
                },
                ExtractionMode.EXTERNAL.value: {
                    "available": archiver_info.available,
                    "description": "External archiving tool for complete page preservation",
                    "features": ["Complete page preservation", "Better for complex sites", "Self-contained output"],
                    "performance": "Medium",
                    "version": archiver_info.version,
                    "error": archiver_info.error,
                    "path": archiver_info.path,
                },
            },
        }
