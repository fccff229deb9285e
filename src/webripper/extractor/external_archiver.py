"""
Adapter around an external whole-page archiving tool (monolith-compatible CLI).

The tool runs as a supervised subprocess. Every run has a hard wall-clock
limit; on timeout, failure or cancellation the tool and every process it
started are killed, and the tool is reaped before control returns to the caller.
"""

from __future__ import annotations

import asyncio
import os
import signal
import tempfile
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import structlog

from ..config.config import ArchiverConfig
from ..exceptions import ExternalToolProcessError, ExternalToolTimeout, ExternalToolUnavailable
from ..observability import histogram
from .locator import (
    count_words,
    extract_description,
    extract_title,
    find_semantic_container,
    parse_html,
    remove_elements,
    visible_text,
)
from .models import ExtractionMode, ExtractionRequest, ExtractionResult

logger = structlog.get_logger(__name__)

# Disables scripts, stylesheets, fonts, frames and media in the archived page.
ISOLATION_FLAGS: Sequence[str] = (
    "--isolate",
    "--no-css",
    "--no-fonts",
    "--no-frames",
    "--no-js",
    "--no-metadata",
    "--no-audio",
    "--no-video",
    "--silent",
)

CHROME_SELECTORS: Sequence[str] = (
    "header",
    "nav",
    "footer",
    "aside",
    ".sidebar",
    ".navigation",
    ".menu",
    ".ads",
    ".advertisement",
)


@dataclass
class ProcessOutput:
    returncode: int
    stdout: str
    stderr: str


@dataclass
class ArchiverInfo:
    available: bool
    path: str
    version: Optional[str] = None
    capabilities: Optional[str] = None
    error: Optional[str] = None


async def _reap(process: asyncio.subprocess.Process) -> None:
    """Kill the process group of ``process`` and wait for the child to exit.

    The tool runs in its own session, so the group also holds anything it
    forked. Those children keep the output pipes open until they die.
    """
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # Group already empty
        pass
    await process.wait()


class ExternalArchiver:
    """Runs the archiving tool and parses its single-file output."""

    name = "external"

    def __init__(self, config: ArchiverConfig) -> None:
        self.config = config
        self.logger = logger.bind(component="ExternalArchiver", tool=config.path)

    def build_args(self, target: str, *, base_url: Optional[str] = None) -> List[str]:
        args = [*ISOLATION_FLAGS, "--user-agent", self.config.user_agent]
        if base_url:
            args.extend(["--base-url", base_url])
        args.append(target)
        return args

    async def run(self, args: Sequence[str], *, timeout: Optional[float] = None) -> ProcessOutput:
        """Run the tool once and collect its output.

        Raises:
            ExternalToolUnavailable: the executable cannot be started
            ExternalToolTimeout: the run exceeded ``timeout`` and was killed
        """
        limit = timeout if timeout is not None else self.config.timeout
        try:
            process = await asyncio.create_subprocess_exec(
                self.config.path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise ExternalToolUnavailable(f"Failed to start {self.config.path}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=limit)
        except asyncio.TimeoutError as e:
            raise ExternalToolTimeout(f"{self.config.path} timed out after {limit}s") from e
        finally:
            # Also runs on cancellation and after a clean exit, for leftover children.
            await _reap(process)

        return ProcessOutput(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace").strip(),
            stderr=stderr.decode("utf-8", errors="replace").strip(),
        )

    async def is_available(self) -> bool:
        """Probe the tool with a version check. Never raises."""
        try:
            result = await self.run(["--version"], timeout=self.config.probe_timeout)
        except Exception as e:
            self.logger.warning("Archiving tool not available", error=str(e))
            return False
        return result.returncode == 0 and "monolith" in result.stdout.lower()

    async def get_info(self) -> ArchiverInfo:
        """Report availability, version and capabilities. Never raises."""
        try:
            version = await self.run(["--version"], timeout=self.config.probe_timeout)
            if version.returncode != 0:
                raise ExternalToolProcessError(
                    f"version check exited with code {version.returncode}",
                    returncode=version.returncode,
                    stderr=version.stderr,
                )
            if "monolith" not in version.stdout.lower():
                raise ExternalToolUnavailable(f"{self.config.path} is not monolith: {version.stdout or 'no version output'}")
            help_output = await self.run(["--help"], timeout=self.config.probe_timeout)
        except Exception as e:
            return ArchiverInfo(available=False, path=self.config.path, error=str(e))
        return ArchiverInfo(
            available=True,
            path=self.config.path,
            version=version.stdout,
            capabilities=help_output.stdout,
        )

    async def _archive(self, args: Sequence[str], url: str) -> ExtractionResult:
        started = time.monotonic()
        try:
            result = await self.run(args)
        finally:
            histogram("external_tool_duration_seconds", time.monotonic() - started)

        if result.returncode != 0:
            raise ExternalToolProcessError(
                f"{self.config.path} failed with code {result.returncode}: {result.stderr or result.stdout}",
                returncode=result.returncode,
                stderr=result.stderr,
            )
        if not result.stdout:
            raise ExternalToolProcessError(
                f"{self.config.path} returned empty content", returncode=result.returncode, stderr=result.stderr
            )

        self.logger.info("Archiving tool completed", url=url, size_kb=round(len(result.stdout) / 1024))

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.parse_output, result.stdout, url)

    async def extract_from_url(self, url: str) -> ExtractionResult:
        """Let the tool fetch and archive ``url`` itself."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ExternalToolProcessError(f"Invalid URL for archiving: {url}")
        self.logger.info("Archiving URL with external tool", url=url)
        return await self._archive(self.build_args(url), url)

    async def extract_from_html(self, html: str, base_url: str) -> ExtractionResult:
        """Archive already-fetched ``html``, resolving resources against ``base_url``."""
        fd, path = tempfile.mkstemp(prefix="webripper-input-", suffix=".html")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(html)
            self.logger.info("Archiving pre-fetched HTML with external tool", url=base_url, size_kb=round(len(html) / 1024))
            return await self._archive(self.build_args(path, base_url=base_url), base_url)
        finally:
            try:
                os.unlink(path)
            except OSError as e:
                self.logger.warning("Failed to remove temp file", path=path, error=str(e))

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        if self.config.use_prefetched_html and request.raw_html:
            return await self.extract_from_html(request.raw_html, request.url)
        return await self.extract_from_url(request.url)

    def parse_output(self, html: str, url: str) -> ExtractionResult:
        """Pull title, description and main content out of an archived page."""
        soup = parse_html(html)

        title = extract_title(soup, default="Untitled Article")
        description = extract_description(soup)

        main_element = find_semantic_container(soup)
        if main_element is None:
            remove_elements(soup, CHROME_SELECTORS)
            main_element = soup.body or soup

        return ExtractionResult(
            title=title,
            description=description,
            content_markup=main_element.decode_contents(),
            word_count=count_words(visible_text(main_element)),
            image_count=len(main_element.find_all("img")),
            extraction_method=ExtractionMode.EXTERNAL,
            source_url=url,
        )
