"""Footnote normalization.

Rewrites ad-hoc footnotes of the form::

    <sup><a href="#1">1</a></sup>  ...  <div id="1">1. Body text</div>

into the canonical structure::

    <sup id="fnref:1"><a href="#fn:1">1</a></sup>
    ...
    <div class="footnotes" role="doc-endnotes"><ol>
      <li id="fn:1"><p>Body text <a href="#fnref:1" class="reversefootnote"
          role="doc-backlink">↩</a></p></li>
    </ol></div>

Only bare numeric identifiers are matched, so the rewrite is idempotent.
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, NavigableString, Tag

from postbuild.model.document import FootnoteEntry
from postbuild.pipeline.error_handling import ErrorManager

logger = logging.getLogger(__name__)

_NUMERIC_ID = re.compile(r"^\d+$")
_NUMERIC_FRAGMENT = re.compile(r"^#(\d+)$")
_BACKLINK_GLYPH = "↩"
_GLYPHS = "^*†‡§¶↩"


def _marker_pattern(footnote_id: str) -> re.Pattern[str]:
    # "1", "1.", "1)", "1:", "[1]", "^1" or a lone glyph, followed by whitespace
    return re.compile(
        rf"^\s*(?:\[{footnote_id}\]|\^?{footnote_id}[.):]?(?=\s|$)|[{re.escape(_GLYPHS)}])\s*"
    )


def find_references(soup: BeautifulSoup) -> dict[str, list[Tag]]:
    """Map footnote id -> reference links whose target is ``#<id>`` inside a ``sup``."""
    refs: dict[str, list[Tag]] = {}
    for link in soup.find_all("a", href=_NUMERIC_FRAGMENT):
        parent = link.parent
        if not isinstance(parent, Tag) or parent.name != "sup":
            continue
        m = _NUMERIC_FRAGMENT.match(link.get("href", ""))
        if m:
            refs.setdefault(m.group(1), []).append(link)
    return refs


def collect_footnote_entries(soup: BeautifulSoup) -> list[tuple[Tag, FootnoteEntry]]:
    """Collect body containers with purely numeric ids, in document order."""
    entries: list[tuple[Tag, FootnoteEntry]] = []
    for div in soup.find_all("div", id=_NUMERIC_ID):
        entries.append((div, FootnoteEntry(id=div["id"], body_nodes=list(div.contents))))
    return entries


def _strip_leading_marker(container: Tag, footnote_id: str) -> None:
    first = container
    while isinstance(first, Tag):
        child = next(
            (
                c
                for c in first.contents
                if not (isinstance(c, NavigableString) and not c.strip())
            ),
            None,
        )
        if child is None:
            return
        if isinstance(child, Tag) and child.name == "sup":
            child.decompose()
            return
        first = child
    if isinstance(first, NavigableString):
        stripped = _marker_pattern(footnote_id).sub("", str(first), count=1)
        if stripped != str(first):
            first.replace_with(NavigableString(stripped))


def _backlink(soup: BeautifulSoup, footnote_id: str) -> Tag:
    link = soup.new_tag(
        "a",
        href=f"#fnref:{footnote_id}",
        attrs={"class": "reversefootnote", "role": "doc-backlink"},
    )
    link.string = _BACKLINK_GLYPH
    return link


def _primary_region(soup: BeautifulSoup) -> Tag | BeautifulSoup:
    for name in ("main", "article"):
        region = soup.find(name)
        if isinstance(region, Tag):
            return region
    body = soup.find("body")
    if isinstance(body, Tag):
        return body
    return soup


def normalize_footnotes(soup: BeautifulSoup, errors: ErrorManager | None = None) -> list[FootnoteEntry]:
    """Rewrite footnote references and bodies into the canonical list form.

    Returns the entries that were moved into the footnote list. References
    without a body, and bodies without a reference, are left untouched.
    """
    errors = errors or ErrorManager()
    bodies = collect_footnote_entries(soup)
    if not bodies:
        return []
    refs = find_references(soup)

    matched: list[tuple[Tag, FootnoteEntry]] = []
    seen: set[str] = set()
    for div, entry in bodies:
        if entry.id in seen:
            errors.warn(
                "FOOTNOTE-002",
                f"Duplicate footnote body id {entry.id}; keeping the first",
                extra={"footnote_id": entry.id},
            )
            continue
        seen.add(entry.id)
        if entry.id not in refs:
            errors.warn(
                "FOOTNOTE-001",
                f"Footnote body {entry.id} has no reference; left unchanged",
                extra={"footnote_id": entry.id},
            )
            continue
        matched.append((div, entry))

    for footnote_id in refs:
        if footnote_id not in seen:
            errors.warn(
                "FOOTNOTE-001",
                f"Footnote reference {footnote_id} has no body; left unchanged",
                extra={"footnote_id": footnote_id},
            )

    if not matched:
        return []

    container = soup.new_tag("div", attrs={"class": "footnotes", "role": "doc-endnotes"})
    ordered = soup.new_tag("ol")
    container.append(ordered)

    for div, entry in matched:
        for link in refs[entry.id]:
            link["href"] = f"#{entry.item_id}"
            sup = link.parent
            if isinstance(sup, Tag):
                sup["id"] = entry.ref_id

        _strip_leading_marker(div, entry.id)
        paragraphs = div.find_all("p")
        target = paragraphs[-1] if paragraphs else div
        target.append(NavigableString(" "))
        target.append(_backlink(soup, entry.id))

        item = soup.new_tag("li", id=entry.item_id)
        for node in list(div.contents):
            item.append(node.extract())
        ordered.append(item)
        div.decompose()
        entry.body_nodes = list(item.contents)

    _primary_region(soup).append(container)
    logger.debug("Normalized %d footnotes", len(matched))
    return [entry for _, entry in matched]


__all__ = [
    "collect_footnote_entries",
    "find_references",
    "normalize_footnotes",
]
