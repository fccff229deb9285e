"""
Protocols for pluggable extraction strategies.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import ExtractionRequest, ExtractionResult


@runtime_checkable
class Extractor(Protocol):
    """Strategy that turns an ExtractionRequest into an ExtractionResult."""

    name: str

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        """Extract the main content for a request.

        Args:
            request: URL and optional pre-fetched HTML

        Returns:
            ExtractionResult with the located content markup
        """
        ...
