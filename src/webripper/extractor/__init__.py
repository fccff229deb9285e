"""
Web Ripper content extraction.

Two strategies share one interface:
1. Heuristic: semantic selectors, then text-density scoring over block containers
2. External: a whole-page archiving tool run as a supervised subprocess

ExtractionModeManager picks between them and falls back from the external
tool to the heuristic extractor when the tool is missing or fails.
"""

from .external_archiver import ArchiverInfo, ExternalArchiver
from .heuristic_extractor import HeuristicExtractor
from .locator import ContentLocator, score_candidate
from .manager import ExtractionModeManager, coerce_mode
from .models import SUPPORTED_MODES, ContentCandidate, ExtractionMode, ExtractionRequest, ExtractionResult
from .protocols import Extractor

__all__ = [
    "ArchiverInfo",
    "ContentCandidate",
    "ContentLocator",
    "ExternalArchiver",
    "ExtractionMode",
    "ExtractionModeManager",
    "ExtractionRequest",
    "ExtractionResult",
    "Extractor",
    "HeuristicExtractor",
    "SUPPORTED_MODES",
    "coerce_mode",
    "score_candidate",
]
