"""Code block conversion.

Each ``<code>`` element is routed through the Highlighter:

- block code (``<pre><code>``) has its whole ``pre`` replaced by the
  highlighter's themed block
- inline code only receives the theme's top-level presentation style

Highlighting errors never escape a block: the block is rendered as plain
escaped text and the failure is logged with the offending snippet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from postbuild.engine.highlighter import Highlighter
from postbuild.model.document import DEFAULT_LANGUAGE, CodeBlockDescriptor
from postbuild.pipeline.error_handling import ErrorManager, HighlightError
from postbuild.pipeline.feature_logger import log_error_policy

logger = logging.getLogger(__name__)

_LANGUAGE_PREFIXES = ("language-", "lang-")
# Spans the highlighter produces; author spans elsewhere are never touched
HIGHLIGHTED_SPANS = "pre > code span"


@dataclass
class ConversionStats:
    blocks: int = 0
    inline: int = 0
    failures: int = 0


def _language_from(tag: Tag | None) -> str | None:
    if not isinstance(tag, Tag):
        return None
    data_lang = tag.get("data-lang")
    if isinstance(data_lang, str) and data_lang.strip():
        return data_lang.strip().lower()
    for cls in tag.get_attribute_list("class"):
        for prefix in _LANGUAGE_PREFIXES:
            if cls.startswith(prefix) and len(cls) > len(prefix):
                return cls[len(prefix) :].lower()
    return None


def detect_language(code: Tag) -> str:
    """Language of a code element: ``data-lang``, then a ``language-*`` class.

    The enclosing ``pre`` is consulted when the code element itself carries
    neither. Falls back to plain text.
    """
    language = _language_from(code)
    if language is None and isinstance(code.parent, Tag) and code.parent.name == "pre":
        language = _language_from(code.parent)
    return language or DEFAULT_LANGUAGE


def describe_code_block(code: Tag, highlighter: Highlighter | None = None) -> CodeBlockDescriptor:
    language = detect_language(code)
    if highlighter is not None:
        language = highlighter.resolve_language(language)
    parent = code.parent
    is_inline = not (isinstance(parent, Tag) and parent.name == "pre")
    return CodeBlockDescriptor(raw_code=code.get_text(), language=language, is_inline=is_inline)


def _render_block(
    descriptor: CodeBlockDescriptor,
    highlighter: Highlighter,
    errors: ErrorManager,
) -> tuple[str, bool]:
    try:
        return highlighter.highlight(descriptor.raw_code, descriptor.language), True
    except Exception as exc:
        failure = HighlightError(descriptor.language, descriptor.raw_code, exc)
        errors.warn(
            "HIGHLIGHT-001",
            str(failure),
            extra={"language": descriptor.language, "snippet": descriptor.raw_code},
            exception=exc,
        )
        log_error_policy("Highlighter", "highlight_failed", "fallback", descriptor.language)
        return highlighter.plain(descriptor.raw_code, DEFAULT_LANGUAGE), False


def _parse_fragment(markup: str) -> Tag:
    fragment = BeautifulSoup(markup, "html.parser")
    node = fragment.find("pre")
    if not isinstance(node, Tag):
        raise ValueError(f"Highlighter output has no <pre> element: {markup[:80]!r}")
    return node.extract()


def convert_code_blocks(
    soup: BeautifulSoup,
    highlighter: Highlighter,
    errors: ErrorManager | None = None,
) -> ConversionStats:
    """Highlight every code element in ``soup``."""
    errors = errors or ErrorManager()
    stats = ConversionStats()
    top_style = highlighter.colors.top_level_style()

    for code in soup.find_all("code"):
        if code.parent is None:
            continue
        # Code nested in another code element is rendered with its container
        if code.find_parent("code") is not None:
            continue
        descriptor = describe_code_block(code, highlighter)
        if descriptor.is_inline:
            if top_style:
                code["style"] = top_style
            stats.inline += 1
            continue

        markup, ok = _render_block(descriptor, highlighter, errors)
        if not ok:
            stats.failures += 1
        code.parent.replace_with(_parse_fragment(markup))
        stats.blocks += 1

    logger.debug(
        "Converted %d code block(s), %d inline, %d failure(s)",
        stats.blocks,
        stats.inline,
        stats.failures,
    )
    return stats


__all__ = [
    "HIGHLIGHTED_SPANS",
    "ConversionStats",
    "convert_code_blocks",
    "describe_code_block",
    "detect_language",
]
