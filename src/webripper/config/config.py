"""
Configuration management for Web Ripper using Pydantic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

MIB = 1024 * 1024

# --- Nested Configuration Models ---


class ExtractionSettings(BaseModel):
    """Configuration for content location and mode selection."""

    mode: Literal["heuristic", "external"] = Field(
        default="heuristic", description="Extraction strategy used when a request starts."
    )
    semantic_min_text_length: int = Field(
        default=100,
        ge=0,
        description="Visible text a semantic container must exceed to be accepted without scoring.",
    )
    candidate_min_text_length: int = Field(
        default=200,
        ge=0,
        description="Containers with less visible text than this are not scored.",
    )


class ArchiverConfig(BaseModel):
    """Configuration for the external whole-page archiving tool."""

    path: str = Field(default="monolith", description="Executable name or path of the archiving tool.")
    timeout: float = Field(default=60.0, gt=0, description="Hard wall-clock limit for one archiving run.")
    probe_timeout: float = Field(default=10.0, gt=0, description="Limit for the version/help probes.")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent passed to the tool.")
    use_prefetched_html: bool = Field(
        default=False,
        description="Archive already-fetched HTML from a temp file instead of letting the tool fetch the URL.",
    )


class ImageConfig(BaseModel):
    """Configuration for image inlining."""

    timeout: float = Field(default=15.0, gt=0, description="Per-image fetch timeout in seconds.")
    max_image_bytes: int = Field(default=5 * MIB, gt=0, description="Largest image that will be embedded.")
    max_concurrency: int = Field(default=8, ge=1, description="Concurrent image fetches per page.")
    max_total_bytes: int = Field(default=50 * MIB, gt=0, description="Embedded image bytes allowed per page.")
    user_agent: str = Field(default=DEFAULT_USER_AGENT)


class FetchConfig(BaseModel):
    """Configuration for fetching raw pages."""

    timeout: float = Field(default=30.0, gt=0, description="HTTP request timeout in seconds.")
    max_retries: int = Field(default=2, ge=0, description="Retries for transient fetch failures.")
    user_agent: str = Field(default=DEFAULT_USER_AGENT)


class MonitoringConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: Optional[str] = Field(default=None, description="Path to log file. If None, logs to console.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "Web Ripper"
    version: str = "0.1.0"
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    archiver: ArchiverConfig = Field(default_factory=ArchiverConfig)
    images: ImageConfig = Field(default_factory=ImageConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="WEBRIPPER_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)
