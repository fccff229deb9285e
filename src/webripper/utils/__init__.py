"""Utility modules for Web Ripper."""

from .slugify import date_path, safe_filename

__all__ = ["date_path", "safe_filename"]
