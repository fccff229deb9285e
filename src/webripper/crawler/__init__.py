"""Raw page fetching."""

from .page_fetcher import PageFetcher, normalize_url

__all__ = ["PageFetcher", "normalize_url"]
