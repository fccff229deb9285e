"""Image inlining, style reduction and archive assembly."""

from .assembler import ArchiveAssembler, content_statistics, render_shell
from .image_inliner import ImageInliner, InlineResult, is_self_contained
from .models import ArchiveDocument, ImageReference, InlineImage
from .style_reducer import StyleReducer, reduce_inline_style, reduce_stylesheet

__all__ = [
    "ArchiveAssembler",
    "ArchiveDocument",
    "ImageInliner",
    "ImageReference",
    "InlineImage",
    "InlineResult",
    "StyleReducer",
    "content_statistics",
    "is_self_contained",
    "reduce_inline_style",
    "reduce_stylesheet",
    "render_shell",
]
