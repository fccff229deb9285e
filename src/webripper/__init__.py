"""
Web Ripper - Extracts the readable content of web pages into self-contained archives.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .exceptions import WebRipperError
from .pipeline import ArchivePipeline

__all__ = ["__version__", "ArchivePipeline", "Config", "WebRipperError"]
