"""Cleanup of the markup artifacts left by highlighting and deduplication."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup, NavigableString, Tag

from postbuild.transform.code_blocks import HIGHLIGHTED_SPANS

logger = logging.getLogger(__name__)

_ASCII_WHITESPACE = " \t\n\r\f"


@dataclass
class CleanupStats:
    nested_pre: int = 0
    empty_removed: int = 0
    unwrapped: int = 0

    @property
    def total(self) -> int:
        return self.nested_pre + self.empty_removed + self.unwrapped


def _significant_children(tag: Tag) -> list:
    return [c for c in tag.contents if not (isinstance(c, NavigableString) and not c.strip(_ASCII_WHITESPACE))]


def collapse_nested_pre(soup: BeautifulSoup) -> int:
    """Replace ``<pre><pre>...</pre></pre>`` with the inner element."""
    collapsed = 0
    for pre in soup.find_all("pre"):
        if pre.parent is None:
            continue
        children = _significant_children(pre)
        if len(children) == 1 and isinstance(children[0], Tag) and children[0].name == "pre":
            pre.replace_with(children[0].extract())
            collapsed += 1
    return collapsed


def _has_identity(span: Tag) -> bool:
    return "id" in span.attrs


def cleanup_spans(soup: BeautifulSoup) -> CleanupStats:
    """Remove empty spans and unwrap spans that carry nothing inside highlighted code.

    - spans with no content at all are deleted
    - spans holding only whitespace are unwrapped
    - spans with no attributes at all are unwrapped

    Only spans inside ``<pre><code>`` are considered. Spans with an ``id`` are
    kept as link targets.
    """
    stats = CleanupStats()
    # Innermost first so that emptied parents are seen after their children
    for span in reversed(soup.select(HIGHLIGHTED_SPANS)):
        if _has_identity(span):
            continue
        if not span.contents or (len(span.contents) == 1 and str(span.contents[0]) == ""):
            span.decompose()
            stats.empty_removed += 1
            continue
        text_only = all(isinstance(c, NavigableString) for c in span.contents)
        if text_only and not span.get_text().strip(_ASCII_WHITESPACE):
            span.unwrap()
            stats.unwrapped += 1
            continue
        if not span.attrs:
            span.unwrap()
            stats.unwrapped += 1
    return stats


def _merge_adjacent_text(soup: BeautifulSoup) -> None:
    # unwrap() leaves sibling strings split; join them so later text passes see one node
    for tag in soup.find_all(True):
        if tag.name in ("script", "style"):
            continue
        previous = None
        for child in list(tag.contents):
            if type(child) is NavigableString and type(previous) is NavigableString:
                joined = NavigableString(str(previous) + str(child))
                previous.replace_with(joined)
                child.extract()
                previous = joined
            else:
                previous = child


def cleanup_markup(soup: BeautifulSoup) -> CleanupStats:
    stats = cleanup_spans(soup)
    stats.nested_pre = collapse_nested_pre(soup)
    if stats.total:
        _merge_adjacent_text(soup)
    logger.debug(
        "Markup cleanup: %d nested pre, %d empty span(s), %d unwrapped",
        stats.nested_pre,
        stats.empty_removed,
        stats.unwrapped,
    )
    return stats


__all__ = [
    "CleanupStats",
    "cleanup_markup",
    "cleanup_spans",
    "collapse_nested_pre",
]
