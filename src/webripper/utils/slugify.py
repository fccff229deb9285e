"""
Filesystem-safe names for archived documents.

Turns article titles into readable file names and builds the optional
year/month folder used when archives are organised by date.
"""

import re
from datetime import datetime
from typing import Optional

# Anything that is not a word character, whitespace or hyphen
UNSAFE_CHARS_PATTERN = re.compile(r"[^\w\s-]")

# Runs of whitespace, underscores and hyphens collapse to one separator
SEPARATOR_RUN_PATTERN = re.compile(r"[\s_-]+")

MAX_FILENAME_LENGTH = 50


def safe_filename(title: Optional[str], max_length: int = MAX_FILENAME_LENGTH) -> str:
    """
    Convert an article title to a safe base file name.

    Args:
        title: Article title
        max_length: Maximum length of the result (default: 50)

    Returns:
        Lowercase name using ``_`` as separator

    Examples:
        >>> safe_filename("Hello, World!")
        'hello_world'

        >>> safe_filename("  A -- B  ")
        'a_b'

        >>> safe_filename("")
        'untitled_article'

        >>> safe_filename("!!!")
        'article'
    """
    if not title or not title.strip():
        return "untitled_article"

    result = title.strip().lower()
    result = UNSAFE_CHARS_PATTERN.sub("", result)
    result = SEPARATOR_RUN_PATTERN.sub("_", result)
    result = result.strip("_")
    result = result[:max_length].rstrip("_")

    return result or "article"


def date_path(when: datetime) -> str:
    """Folder for an archive extracted at ``when``, e.g. ``2024/03``."""
    return f"{when.year}/{when.month:02d}"
