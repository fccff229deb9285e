"""
Reduces page styling to text-level formatting.

Layout CSS (positioning, sizing, flex/grid, spacing) is removed from style
blocks, inline ``style`` attributes and class lists; font, colour and text
properties survive. External stylesheets are always dropped.

Edits are planned over the whole tree first and applied afterwards, so the
tree is never modified while it is being walked.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional

import structlog
from bs4 import Tag

from ..exceptions import AssemblyFailure
from ..extractor.locator import parse_html

logger = structlog.get_logger(__name__)

INLINE_STYLE_WHITELIST = frozenset(
    {
        "font-family",
        "font-size",
        "font-weight",
        "font-style",
        "line-height",
        "letter-spacing",
        "text-align",
        "text-decoration",
        "text-transform",
        "color",
    }
)

SEMANTIC_CLASS_WHITELIST = frozenset(
    {
        "article",
        "content",
        "quote",
        "blockquote",
        "pullquote",
        "code",
        "highlight",
        "title",
        "subtitle",
        "caption",
        "footnote",
        "note",
        "byline",
        "lead",
        "summary",
    }
)

LAYOUT_CLASS_PATTERN = re.compile(
    r"(^|[-_])(layout|grid|flex|container|sidebar|nav|navbar|navigation|ads?|advert\w*|banner)([-_]|$)",
    re.IGNORECASE,
)

STYLE_DATA_ATTR_MARKERS = ("style", "class", "css", "theme", "color")

UNSAFE_VALUE_PATTERN = re.compile(r"url\(|expression\(|javascript:", re.IGNORECASE)

CSS_COMMENT_PATTERN = re.compile(r"/\*.*?\*/", re.DOTALL)


def is_text_property(name: str) -> bool:
    """Properties a style block may keep."""
    name = name.strip().lower()
    return (
        name == "font"
        or name.startswith("font-")
        or name.startswith("text-")
        or name in ("line-height", "letter-spacing", "word-spacing", "color")
    )


def _filter_declarations(body: str, keep: Callable[[str], bool]) -> List[str]:
    kept = []
    for declaration in body.split(";"):
        declaration = declaration.strip()
        if ":" not in declaration:
            continue
        name, value = declaration.split(":", 1)
        if keep(name.strip().lower()) and value.strip() and not UNSAFE_VALUE_PATTERN.search(value):
            kept.append(declaration)
    return kept


def reduce_inline_style(style: str) -> str:
    """Keep only whitelisted text-formatting declarations of a ``style`` attribute."""
    return ";".join(_filter_declarations(style, lambda name: name in INLINE_STYLE_WHITELIST))


def _skip_block(css: str, start: int) -> int:
    """Index just past the brace block opening at ``start``."""
    depth = 0
    for i in range(start, len(css)):
        if css[i] == "{":
            depth += 1
        elif css[i] == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return len(css)


def reduce_stylesheet(css: str) -> str:
    """Reduce a style block to rules with text-related declarations.

    At-rules (``@media``, ``@font-face``, ``@import`` ...) are dropped.
    """
    css = CSS_COMMENT_PATTERN.sub("", css)
    rules: List[str] = []
    pos = 0
    while pos < len(css):
        while pos < len(css) and css[pos].isspace():
            pos += 1
        brace = css.find("{", pos)
        if css.startswith("@", pos):
            semicolon = css.find(";", pos)
            if semicolon != -1 and (brace == -1 or semicolon < brace):
                # Statement at-rule such as @import or @charset
                pos = semicolon + 1
            elif brace == -1:
                break
            else:
                pos = _skip_block(css, brace)
            continue
        if brace == -1:
            break
        prelude = css[pos:brace].strip()
        end = css.find("}", brace)
        if end == -1:
            break
        kept = _filter_declarations(css[brace + 1 : end], is_text_property)
        if prelude and kept:
            rules.append(f"{prelude} {{ {'; '.join(kept)} }}")
        pos = end + 1
    return "\n".join(rules)


def reduce_classes(tokens: List[str]) -> List[str]:
    return [
        token for token in tokens if token.lower() in SEMANTIC_CLASS_WHITELIST and not LAYOUT_CLASS_PATTERN.search(token)
    ]


@dataclass(frozen=True)
class StyleEdit:
    """A planned change to one element."""

    element: Tag
    action: str  # "remove", "set_attr", "del_attr" or "set_text"
    name: Optional[str] = None
    value: Optional[object] = None


class StyleReducer:
    """Strips layout CSS from content markup while keeping text formatting."""

    def plan(self, soup) -> List[StyleEdit]:
        edits: List[StyleEdit] = []

        for style_tag in soup.find_all("style"):
            reduced = reduce_stylesheet(style_tag.string or style_tag.get_text())
            if reduced:
                edits.append(StyleEdit(style_tag, "set_text", value=reduced))
            else:
                edits.append(StyleEdit(style_tag, "remove"))

        for link in soup.find_all("link"):
            rel = link.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "stylesheet" in [r.lower() for r in rel]:
                edits.append(StyleEdit(link, "remove"))

        for element in soup.find_all(True):
            if element.has_attr("style"):
                reduced = reduce_inline_style(str(element["style"]))
                if reduced:
                    edits.append(StyleEdit(element, "set_attr", name="style", value=reduced))
                else:
                    edits.append(StyleEdit(element, "del_attr", name="style"))

            if element.has_attr("class"):
                classes = element["class"]
                tokens = classes.split() if isinstance(classes, str) else list(classes)
                kept = reduce_classes(tokens)
                if kept:
                    edits.append(StyleEdit(element, "set_attr", name="class", value=kept))
                else:
                    edits.append(StyleEdit(element, "del_attr", name="class"))

            for attr in list(element.attrs):
                lowered = attr.lower()
                if lowered.startswith("data-") and any(marker in lowered for marker in STYLE_DATA_ATTR_MARKERS):
                    edits.append(StyleEdit(element, "del_attr", name=attr))

        return edits

    @staticmethod
    def apply(edits: List[StyleEdit]) -> None:
        for edit in edits:
            element = edit.element
            if edit.action == "remove":
                element.decompose()
            elif edit.action == "set_text":
                element.string = str(edit.value)
            elif edit.action == "set_attr":
                element[edit.name] = edit.value
            elif edit.action == "del_attr":
                if element.has_attr(edit.name):
                    del element[edit.name]

    def reduce(self, markup: str) -> str:
        """Return ``markup`` with layout styling removed.

        Raises:
            AssemblyFailure: the markup could not be processed
        """
        try:
            soup = parse_html(markup)
            edits = self.plan(soup)
            self.apply(edits)
        except Exception as e:
            raise AssemblyFailure(f"Style reduction failed: {e}", stage="style_reduction") from e

        logger.debug("Styles reduced", edits=len(edits))
        return soup.decode()
