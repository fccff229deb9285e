"""Configuration models for Web Ripper."""

from __future__ import annotations

from .config import (
    DEFAULT_USER_AGENT,
    ArchiverConfig,
    Config,
    ExtractionSettings,
    FetchConfig,
    ImageConfig,
    MonitoringConfig,
)

__all__ = [
    "DEFAULT_USER_AGENT",
    "ArchiverConfig",
    "Config",
    "ExtractionSettings",
    "FetchConfig",
    "ImageConfig",
    "MonitoringConfig",
]
