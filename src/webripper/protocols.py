"""
Protocols for the collaborators the pipeline hands work to.

Storage and tag generation live outside this package; the pipeline only
produces documents for the one and consumes tags from the other.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Protocol, runtime_checkable

if TYPE_CHECKING:
    from webripper.archive.models import ArchiveDocument


@runtime_checkable
class StorageProtocol(Protocol):
    """Persists a finished archive and reports where it went."""

    async def store(self, document: ArchiveDocument, metadata: Dict[str, Any]) -> str:
        """Store ``document`` with its metadata blob.

        Returns:
            Storage location (path or URL) of the stored document
        """
        ...


@runtime_checkable
class TaggerProtocol(Protocol):
    """Suggests tags for a page."""

    async def generate_tags(self, title: str, text: str, url: str, description: str = "") -> List[str]:
        ...
