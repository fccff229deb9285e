"""
Error taxonomy for the extraction and archival pipeline.

Every error names the pipeline stage it belongs to so callers can report
where a request failed.
"""

from __future__ import annotations

from typing import Optional


class WebRipperError(Exception):
    """Base class for all pipeline errors."""

    stage: str = "pipeline"

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


class UnsupportedModeError(WebRipperError, ValueError):
    """Raised when an extraction mode outside the supported set is requested."""

    stage = "configuration"


class PageFetchError(WebRipperError):
    """Raised when the raw page cannot be fetched or the URL is invalid."""

    stage = "fetch"


class LocationFailure(WebRipperError):
    """Raised when no content subtree can be located at all."""

    stage = "location"


class ExternalToolError(WebRipperError):
    """Base class for failures of the external archiving tool."""

    stage = "external"


class ExternalToolUnavailable(ExternalToolError):
    """The archiving tool could not be found or failed its probe."""


class ExternalToolTimeout(ExternalToolError):
    """The archiving tool exceeded its wall-clock limit and was killed."""


class ExternalToolProcessError(ExternalToolError):
    """The archiving tool exited non-zero or produced no output."""

    def __init__(self, message: str, *, returncode: Optional[int] = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ImageFetchFailure(WebRipperError):
    """A single image could not be inlined. Never escapes the inliner."""

    stage = "image_inlining"


class AssemblyFailure(WebRipperError):
    """Raised when markup cannot be reduced or assembled into an archive."""

    stage = "assembly"


class PipelineError(WebRipperError):
    """Wraps an unexpected exception raised inside a pipeline stage."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}", stage=stage)
        self.cause = cause
