"""
Tests for the external archiving tool adapter.

The tool is replaced by small shell scripts so that process supervision,
argument handling and output parsing run against real subprocesses.
"""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

import pytest
from webripper.exceptions import ExternalToolProcessError, ExternalToolTimeout, ExternalToolUnavailable
from webripper.extractor.external_archiver import ISOLATION_FLAGS, ExternalArchiver
from webripper.extractor.models import ExtractionMode, ExtractionRequest
from webripper.observability import METRICS

from tests.helpers.fake_tools import FAILING_TOOL, FAKE_TOOL, FORKING_TOOL, HANGING_TOOL, SILENT_TOOL, WRONG_TOOL
from tests.helpers.metric_delta import histogram_observes


def _is_running(pid: int) -> bool:
    """True while ``pid`` exists and is not a zombie waiting for its new parent."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    if not Path("/proc").is_dir():
        return True
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except OSError:
        return False
    return stat.rsplit(")", 1)[-1].split()[0] != "Z"


async def _wait_until_gone(pid: int, within: float = 2.0) -> bool:
    deadline = time.monotonic() + within
    while time.monotonic() < deadline:
        if not _is_running(pid):
            return True
        await asyncio.sleep(0.05)
    return not _is_running(pid)


@pytest.mark.unit
class TestAvailability:
    """Version probe and tool information."""

    @pytest.mark.asyncio
    async def test_available_tool(self, make_tool):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL))
        assert await archiver.is_available() is True

    @pytest.mark.asyncio
    async def test_missing_binary_is_unavailable(self, missing_tool):
        archiver = ExternalArchiver(missing_tool)
        assert await archiver.is_available() is False

    @pytest.mark.asyncio
    async def test_unrelated_program_is_unavailable(self, make_tool):
        archiver = ExternalArchiver(make_tool(WRONG_TOOL))
        assert await archiver.is_available() is False

    @pytest.mark.asyncio
    async def test_get_info_reports_version_and_capabilities(self, make_tool):
        config = make_tool(FAKE_TOOL)
        info = await ExternalArchiver(config).get_info()

        assert info.available is True
        assert info.version == "monolith 2.8.1"
        assert "Usage" in info.capabilities
        assert info.path == config.path
        assert info.error is None

    @pytest.mark.asyncio
    async def test_get_info_agrees_with_is_available(self, make_tool):
        archiver = ExternalArchiver(make_tool(WRONG_TOOL))
        info = await archiver.get_info()

        assert info.available is False
        assert info.available is await archiver.is_available()
        assert "not monolith" in info.error

    @pytest.mark.asyncio
    async def test_get_info_never_raises(self, missing_tool):
        info = await ExternalArchiver(missing_tool).get_info()

        assert info.available is False
        assert info.version is None
        assert info.error


@pytest.mark.unit
class TestArguments:
    """Fixed isolation flag set."""

    def test_url_arguments(self, make_tool):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL, user_agent="TestAgent/1.0"))
        args = archiver.build_args("https://example.com/post")

        assert args[: len(ISOLATION_FLAGS)] == list(ISOLATION_FLAGS)
        assert args[-3:] == ["--user-agent", "TestAgent/1.0", "https://example.com/post"]
        for flag in ("--no-js", "--no-css", "--no-fonts", "--no-frames", "--no-audio", "--no-video"):
            assert flag in args

    def test_base_url_precedes_target(self, make_tool):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL))
        args = archiver.build_args("/tmp/page.html", base_url="https://example.com/post")

        assert args[-3:] == ["--base-url", "https://example.com/post", "/tmp/page.html"]


@pytest.mark.unit
class TestArchiving:
    """Runs against the fake tool."""

    @pytest.mark.asyncio
    async def test_extract_from_url(self, make_tool, tmp_path: Path):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL))

        with histogram_observes(METRICS["external_tool_duration_seconds"]):
            result = await archiver.extract_from_url("https://example.com/post")

        assert result.extraction_method is ExtractionMode.EXTERNAL
        assert result.title == "Archived Title"
        assert result.description == "Archived description"
        assert "Archived body text" in result.content_markup
        assert "Menu entries" not in result.content_markup
        assert result.source_url == "https://example.com/post"

        recorded = (tmp_path / "args.txt").read_text().splitlines()
        assert recorded[-1] == "https://example.com/post"
        assert "--isolate" in recorded

    @pytest.mark.asyncio
    async def test_extract_from_html_uses_temp_file(self, make_tool, tmp_path: Path):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL))
        html = "<html><body><p>prefetched</p></body></html>"

        result = await archiver.extract_from_html(html, "https://example.com/post")

        recorded = (tmp_path / "args.txt").read_text().splitlines()
        temp_path = recorded[-1]
        assert recorded[-3:-1] == ["--base-url", "https://example.com/post"]
        assert (tmp_path / "input.html").read_text() == html
        assert not os.path.exists(temp_path)
        assert result.title == "Archived Title"

    @pytest.mark.asyncio
    async def test_extract_uses_prefetched_html_when_enabled(self, make_tool, tmp_path: Path):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL, use_prefetched_html=True))
        request = ExtractionRequest(url="https://example.com/post", raw_html="<p>x</p>", mode=ExtractionMode.EXTERNAL)

        await archiver.extract(request)

        assert "--base-url" in (tmp_path / "args.txt").read_text().splitlines()

    @pytest.mark.asyncio
    async def test_extract_ignores_prefetched_html_by_default(self, make_tool, tmp_path: Path):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL))
        request = ExtractionRequest(url="https://example.com/post", raw_html="<p>x</p>", mode=ExtractionMode.EXTERNAL)

        await archiver.extract(request)

        recorded = (tmp_path / "args.txt").read_text().splitlines()
        assert "--base-url" not in recorded
        assert recorded[-1] == "https://example.com/post"

    @pytest.mark.asyncio
    async def test_invalid_url_rejected(self, make_tool):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL))
        with pytest.raises(ExternalToolProcessError):
            await archiver.extract_from_url("ftp://example.com/file")

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_process_error(self, make_tool):
        archiver = ExternalArchiver(make_tool(FAILING_TOOL))

        with pytest.raises(ExternalToolProcessError) as exc_info:
            await archiver.extract_from_url("https://example.com/post")

        assert exc_info.value.returncode == 1
        assert "could not fetch target" in exc_info.value.stderr
        assert exc_info.value.stage == "external"

    @pytest.mark.asyncio
    async def test_empty_output_is_process_error(self, make_tool):
        archiver = ExternalArchiver(make_tool(SILENT_TOOL))

        with pytest.raises(ExternalToolProcessError) as exc_info:
            await archiver.extract_from_url("https://example.com/post")

        assert exc_info.value.returncode == 0
        assert "empty content" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_binary_is_unavailable_error(self, missing_tool):
        archiver = ExternalArchiver(missing_tool)
        with pytest.raises(ExternalToolUnavailable):
            await archiver.extract_from_url("https://example.com/post")


@pytest.mark.unit
class TestSupervision:
    """Hard timeout and process reaping."""

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, make_tool, tmp_path: Path):
        timeout = 0.5
        archiver = ExternalArchiver(make_tool(HANGING_TOOL, timeout=timeout))

        started = time.monotonic()
        with pytest.raises(ExternalToolTimeout):
            await archiver.extract_from_url("https://example.com/post")
        elapsed = time.monotonic() - started

        assert elapsed < timeout + 2.0
        pid = int((tmp_path / "pid.txt").read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    @pytest.mark.asyncio
    async def test_timeout_kills_forked_children(self, make_tool, tmp_path: Path):
        timeout = 0.5
        archiver = ExternalArchiver(make_tool(FORKING_TOOL, timeout=timeout))

        started = time.monotonic()
        with pytest.raises(ExternalToolTimeout):
            await archiver.extract_from_url("https://example.com/post")
        elapsed = time.monotonic() - started

        assert elapsed < timeout + 2.0
        child_pid = int((tmp_path / "pid.txt").read_text().strip())
        assert await _wait_until_gone(child_pid)

    @pytest.mark.asyncio
    async def test_cancellation_kills_forked_children(self, make_tool, tmp_path: Path):
        archiver = ExternalArchiver(make_tool(FORKING_TOOL, timeout=30.0))

        task = asyncio.create_task(archiver.extract_from_url("https://example.com/post"))
        pid_file = tmp_path / "pid.txt"
        for _ in range(100):
            if pid_file.exists() and pid_file.read_text().strip():
                break
            await asyncio.sleep(0.05)

        started = time.monotonic()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert time.monotonic() - started < 2.0
        assert await _wait_until_gone(int(pid_file.read_text().strip()))

    @pytest.mark.asyncio
    async def test_cancellation_kills_process(self, make_tool, tmp_path: Path):
        archiver = ExternalArchiver(make_tool(HANGING_TOOL, timeout=30.0))

        task = asyncio.create_task(archiver.extract_from_url("https://example.com/post"))
        pid_file = tmp_path / "pid.txt"
        for _ in range(100):
            if pid_file.exists() and pid_file.read_text().strip():
                break
            await asyncio.sleep(0.05)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        pid = int(pid_file.read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)


@pytest.mark.unit
class TestOutputParsing:
    """Semantic lookup without scoring."""

    def test_semantic_container_used_regardless_of_length(self, make_tool):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL))
        result = archiver.parse_output("<html><body><nav>x</nav><article><p>Tiny</p></article></body></html>", "https://e.com")

        assert result.content_markup == "<p>Tiny</p>"
        assert result.word_count == 1

    def test_chrome_removed_without_semantic_container(self, make_tool):
        archiver = ExternalArchiver(make_tool(FAKE_TOOL))
        html = """
        <html><body>
            <header>Site</header><div class="sidebar">Links</div>
            <div><p>Body text here</p><img src="data:image/png;base64,AAAA"></div>
            <footer>Legal</footer>
        </body></html>
        """
        result = archiver.parse_output(html, "https://e.com")

        assert "Site" not in result.content_markup
        assert "Links" not in result.content_markup
        assert "Legal" not in result.content_markup
        assert result.word_count == 3
        assert result.image_count == 1
        assert result.title == "Untitled Article"
