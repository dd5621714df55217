"""Merging of adjacent same-class spans.

``<span class="e">a</span> <span class="e">b</span>`` becomes
``<span class="e">a b</span>``. A span merges at most once per pass, so three
consecutive spans need two passes to collapse into one. Only spans inside
``<pre><code>`` are merged.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag

from postbuild.transform.code_blocks import HIGHLIGHTED_SPANS

logger = logging.getLogger(__name__)

DEFAULT_PASSES = 2


def _is_mergeable(node: PageElement | None) -> bool:
    if not isinstance(node, Tag) or node.name != "span":
        return False
    if set(node.attrs) != {"class"} or not node.get("class"):
        return False
    return bool(node.contents) and all(type(c) is NavigableString for c in node.contents)


def _is_blank(node: PageElement | None) -> bool:
    return type(node) is NavigableString and not str(node).strip(" \t\n\r\f")


def _merge_pass(soup: BeautifulSoup) -> int:
    merged = 0
    consumed: set[int] = set()
    for span in soup.select(HIGHLIGHTED_SPANS):
        if id(span) in consumed or not _is_mergeable(span):
            continue
        gap = span.next_sibling
        candidate = gap.next_sibling if _is_blank(gap) else gap
        if candidate is gap:
            gap = None
        if not _is_mergeable(candidate) or candidate.get_attribute_list("class") != span.get_attribute_list("class"):
            continue
        text = span.get_text() + (str(gap) if gap is not None else "") + candidate.get_text()
        span.string = text
        if gap is not None:
            gap.extract()
        consumed.add(id(candidate))
        candidate.decompose()
        merged += 1
    return merged


def compress_spans(soup: BeautifulSoup, passes: int = DEFAULT_PASSES) -> int:
    """Run ``passes`` merge passes and return the number of merges."""
    total = 0
    for _ in range(passes):
        merged = _merge_pass(soup)
        total += merged
        if not merged:
            break
    logger.debug("Merged %d adjacent span pair(s)", total)
    return total


__all__ = ["DEFAULT_PASSES", "compress_spans"]
