"""
Shared test configuration for Web Ripper.

Provides sample pages, configuration objects and small executable stand-ins
for the external archiving tool.
"""

# Standard library imports
import os
import stat
from pathlib import Path
from typing import Callable

# Third-party imports
import pytest

# Local imports
from webripper.config import ArchiverConfig, Config, ImageConfig

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")
    config.addinivalue_line("markers", "slow: Tests that take >10 seconds")


# ============================================================================
# Sample Content Fixtures
# ============================================================================

ARTICLE_TEXT = (
    "Researchers published a detailed account of how the new storage engine handles "
    "compaction under sustained write load, including the trade-offs they made."
)


@pytest.fixture
def sample_html():
    """A typical article page with navigation chrome around the content."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>Test Article</title>
        <meta name="description" content="Sample article for testing">
        <style>body {{ margin: 0; font-family: Georgia; }}</style>
        <script>console.log("tracking");</script>
    </head>
    <body>
        <header><a href="/">Home</a></header>
        <nav><a href="/a">A</a> <a href="/b">B</a></nav>
        <article>
            <h1>Test Article Title</h1>
            <p>{ARTICLE_TEXT}</p>
            <p>A second paragraph with <strong>bold text</strong> and <a href="https://example.com">a link</a>.</p>
            <img src="/images/chart.png" alt="Chart">
        </article>
        <footer>Copyright</footer>
    </body>
    </html>
    """


@pytest.fixture
def png_bytes() -> bytes:
    """About 10 KB of PNG-signed image payload."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * (10 * 1024 - 8)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config() -> Config:
    """Default configuration with fast image timeouts."""
    return Config(images=ImageConfig(timeout=2.0))


# ============================================================================
# External Tool Fixtures
# ============================================================================


@pytest.fixture
def make_tool(tmp_path: Path) -> Callable[[str], ArchiverConfig]:
    """Write an executable shell script and return an ArchiverConfig pointing at it."""

    def _make(script: str, **overrides) -> ArchiverConfig:
        path = tmp_path / "monolith"
        path.write_text(script)
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        settings = {"path": str(path), "timeout": 5.0, "probe_timeout": 5.0, **overrides}
        return ArchiverConfig(**settings)

    return _make


@pytest.fixture
def missing_tool(tmp_path: Path) -> ArchiverConfig:
    """An ArchiverConfig whose executable does not exist."""
    return ArchiverConfig(path=os.fspath(tmp_path / "no-such-tool"), probe_timeout=2.0)
