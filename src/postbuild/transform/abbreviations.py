"""Abbreviation expansion.

Definition lines of the form ``*[HTML]: Hyper Text Markup Language`` that
the site generator left inside paragraph text are collected into an
AbbreviationTable and removed. Every whole-word occurrence of a defined term
in the remaining text is then wrapped as ``<abbr title="...">TERM</abbr>``.
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, NavigableString, Tag

from postbuild.model.document import AbbreviationTable

logger = logging.getLogger(__name__)

_DEFINITION_LINE = re.compile(r"^[ \t]*\*\[([^\]\n]+)\]:[ \t]*(.*?)[ \t]*(?:\r?\n|$)", re.MULTILINE)

# Text below these elements is never rewritten
EXCLUDED_ELEMENTS = frozenset({"abbr", "code", "pre", "script", "style", "textarea", "title", "head", "kbd", "samp"})


def _is_plain_text(node: object) -> bool:
    return type(node) is NavigableString


def _is_excluded(node: NavigableString) -> bool:
    return any(parent.name in EXCLUDED_ELEMENTS for parent in node.parents)


def _paragraph_is_empty(paragraph: Tag) -> bool:
    if paragraph.get_text().strip():
        return False
    return all(isinstance(child, NavigableString) or child.name == "br" for child in paragraph.contents)


def extract_definitions(soup: BeautifulSoup) -> AbbreviationTable:
    """Collect and strip definition lines from paragraph text.

    Paragraphs left empty by the removal are deleted. A term defined twice
    keeps its last definition.
    """
    pairs: list[tuple[str, str]] = []
    for paragraph in soup.find_all("p"):
        touched = False
        for text in list(paragraph.find_all(string=True)):
            if not _is_plain_text(text) or _is_excluded(text):
                continue
            found = _DEFINITION_LINE.findall(str(text))
            if not found:
                continue
            pairs.extend((term.strip(), definition) for term, definition in found if term.strip())
            text.replace_with(NavigableString(_DEFINITION_LINE.sub("", str(text))))
            touched = True
        if touched and _paragraph_is_empty(paragraph):
            paragraph.decompose()
    return AbbreviationTable(pairs)


def _term_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)")


def _split_fragments(
    soup: BeautifulSoup,
    fragments: list[str | Tag],
    term: str,
    definition: str,
    pattern: re.Pattern[str],
) -> tuple[list[str | Tag], int]:
    result: list[str | Tag] = []
    count = 0
    for fragment in fragments:
        if isinstance(fragment, Tag):
            result.append(fragment)
            continue
        pos = 0
        for match in pattern.finditer(fragment):
            if match.start() > pos:
                result.append(fragment[pos : match.start()])
            abbr = soup.new_tag("abbr", title=definition)
            abbr.string = term
            result.append(abbr)
            count += 1
            pos = match.end()
        if pos < len(fragment):
            result.append(fragment[pos:])
    return result, count


def apply_abbreviations(soup: BeautifulSoup, table: AbbreviationTable) -> int:
    """Wrap whole-word occurrences of every term, in table order.

    Returns the number of ``abbr`` elements created.
    """
    if not table:
        return 0
    patterns = [(term, table[term], _term_pattern(term)) for term in table]
    created = 0
    for text in list(soup.find_all(string=True)):
        if not _is_plain_text(text) or _is_excluded(text):
            continue
        fragments: list[str | Tag] = [str(text)]
        for term, definition, pattern in patterns:
            fragments, count = _split_fragments(soup, fragments, term, definition, pattern)
            created += count
        if len(fragments) == 1 and isinstance(fragments[0], str):
            continue
        nodes = [NavigableString(f) if isinstance(f, str) else f for f in fragments]
        anchor = nodes[0]
        text.replace_with(anchor)
        for node in nodes[1:]:
            anchor.insert_after(node)
            anchor = node
    return created


def expand_abbreviations(soup: BeautifulSoup) -> AbbreviationTable:
    """Extract the document's abbreviation table and apply it."""
    table = extract_definitions(soup)
    if not table:
        return table
    created = apply_abbreviations(soup, table)
    logger.debug("Expanded %d abbreviation(s) from %d definition(s)", created, len(table))
    return table


__all__ = [
    "EXCLUDED_ELEMENTS",
    "apply_abbreviations",
    "expand_abbreviations",
    "extract_definitions",
]
