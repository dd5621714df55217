"""Usage-based CSS reduction.

``reduce_css`` keeps the rules whose selectors are used by some markup and
drops the rest. Usage is decided by one of two predicates:

- ``DomUsage`` matches each selector against one parsed page with soupsieve.
  It is used for a page's own ``<style>`` blocks.
- ``UsageIndex`` is the coarse, site-wide check: a selector is kept when every
  class, id, tag and attribute name it mentions occurs as a token somewhere
  in the HTML corpus.

Selectors the predicate cannot evaluate are kept.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence

import soupsieve
from bs4 import BeautifulSoup

from postbuild.transform.css_rules import (
    AtRuleNode,
    CssNode,
    StyleRuleNode,
    parse_stylesheet,
    serialize_stylesheet,
)

logger = logging.getLogger(__name__)

# States and pseudo-elements that never match a static document
_DYNAMIC_PSEUDO_CLASSES = (
    "hover",
    "focus",
    "focus-within",
    "focus-visible",
    "active",
    "visited",
    "target",
    "target-within",
    "autofill",
    "placeholder-shown",
    "user-invalid",
    "user-valid",
    "before",
    "after",
    "first-line",
    "first-letter",
)
_PSEUDO_ELEMENT = re.compile(r"::[A-Za-z-]+(?:\([^)]*\))?")
_DYNAMIC = re.compile(
    r":(?:-[a-z]+-)?(?:" + "|".join(re.escape(p) for p in _DYNAMIC_PSEUDO_CLASSES) + r")(?![\w-])",
    re.IGNORECASE,
)
_VENDOR_PSEUDO = re.compile(r":-[a-z]+-[A-Za-z-]+(?:\([^)]*\))?")
_EMPTY_FUNCTION = re.compile(r":[\w-]+\(\s*\)")
_TRAILING_COMBINATOR = re.compile(r"(^|[\s>+~,])$")

_STRING = re.compile(r"\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*'")
_ATTRIBUTE = re.compile(r"\[\s*([A-Za-z_][\w:-]*)[^\]]*\]")
_PSEUDO_ANY = re.compile(r"::?[A-Za-z-]+")
_IDENT = r"(?:\\.|[\w-])+"
_CLASS_OR_ID = re.compile(rf"([.#])({_IDENT})")
_TAG = re.compile(r"(?:^|(?<=[\s>+~]))([A-Za-z][A-Za-z0-9-]*)")
_TOKEN = re.compile(r"[A-Za-z0-9_-]+")
_ESCAPE = re.compile(r"\\(.)")

UsagePredicate = Callable[[str], bool]


def strip_dynamic_pseudos(selector: str) -> str:
    """Drop pseudo-elements and user-interaction pseudo-classes from ``selector``."""
    stripped = _PSEUDO_ELEMENT.sub("", selector)
    stripped = _DYNAMIC.sub("", stripped)
    stripped = _VENDOR_PSEUDO.sub("", stripped)
    stripped = _EMPTY_FUNCTION.sub("", stripped).strip()
    if _TRAILING_COMBINATOR.search(stripped):
        stripped = f"{stripped}*"
    return stripped


class DomUsage:
    """Selector usage against one parsed document."""

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup
        self._cache: dict[str, bool] = {}

    @classmethod
    def from_html(cls, html: str) -> DomUsage:
        return cls(BeautifulSoup(html, "html.parser"))

    def __call__(self, selector: str) -> bool:
        cached = self._cache.get(selector)
        if cached is not None:
            return cached
        query = strip_dynamic_pseudos(selector)
        try:
            used = self.soup.select_one(query) is not None
        except soupsieve.SelectorSyntaxError:
            logger.debug("Keeping selector %r: not evaluable", selector)
            used = True
        self._cache[selector] = used
        return used


class UsageIndex:
    """Token set extracted from an HTML corpus."""

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        self.tokens: set[str] = set(tokens)
        self._lower = {t.lower() for t in self.tokens}

    def add_document(self, html: str) -> None:
        found = set(_TOKEN.findall(html))
        self.tokens |= found
        self._lower |= {t.lower() for t in found}

    def _has(self, name: str) -> bool:
        if name in self.tokens:
            return True
        parts = _TOKEN.findall(name)
        return bool(parts) and all(part in self.tokens for part in parts)

    def __call__(self, selector: str) -> bool:
        text = _STRING.sub("", selector)
        attributes = _ATTRIBUTE.findall(text)
        text = _ATTRIBUTE.sub("", text)
        # Arguments of functional pseudo-classes are not checked
        text = _strip_pseudo_arguments(text)
        for _, ident in _CLASS_OR_ID.findall(text):
            if not self._has(_ESCAPE.sub(r"\1", ident)):
                return False
        for attribute in attributes:
            if attribute.lower() not in self._lower:
                return False
        text = _PSEUDO_ANY.sub("", _CLASS_OR_ID.sub("", text))
        for tag in _TAG.findall(text):
            if tag.lower() not in self._lower:
                return False
        return True

    def __len__(self) -> int:
        return len(self.tokens)


def _strip_pseudo_arguments(text: str) -> str:
    out: list[str] = []
    depth = 0
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        elif depth == 0:
            out.append(ch)
    return "".join(out)


def build_usage_index(documents: Iterable[str]) -> UsageIndex:
    """Build the site-wide usage index from HTML texts."""
    index = UsageIndex()
    for html in documents:
        index.add_document(html)
    return index


def compile_safelist(patterns: Iterable[str | re.Pattern[str]]) -> tuple[re.Pattern[str], ...]:
    return tuple(p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns)


def _filter(nodes: list[CssNode], is_used: UsagePredicate, safelist: Sequence[re.Pattern[str]]) -> list[CssNode]:
    kept: list[CssNode] = []
    for node in nodes:
        if isinstance(node, StyleRuleNode):
            selectors = [
                s for s in node.selectors if any(p.search(s) for p in safelist) or is_used(s)
            ]
            if selectors:
                kept.append(StyleRuleNode(selectors=selectors, body=node.body))
        elif isinstance(node, AtRuleNode) and node.children is not None:
            children = _filter(node.children, is_used, safelist)
            if children:
                kept.append(AtRuleNode(prelude=node.prelude, children=children, is_block=True))
        else:
            kept.append(node)
    return kept


def reduce_css(
    css: str,
    is_used: UsagePredicate,
    safelist: Iterable[str | re.Pattern[str]] = (),
) -> str:
    """Return ``css`` restricted to the rules ``is_used`` accepts.

    Safelisted selectors are always kept. The output is re-serialized in
    compact form with rule order preserved.
    """
    if not css.strip():
        return css
    nodes = parse_stylesheet(css)
    return serialize_stylesheet(_filter(nodes, is_used, compile_safelist(safelist)))


def stylesheet_classes(css: str) -> set[str]:
    """Class names referred to by any selector in ``css``."""
    names: set[str] = set()
    pending = parse_stylesheet(css)
    while pending:
        node = pending.pop()
        if isinstance(node, AtRuleNode):
            pending.extend(node.children or ())
            continue
        for selector in node.selectors:
            plain = _ATTRIBUTE.sub("", _STRING.sub("", selector))
            for match in _CLASS_OR_ID.finditer(plain):
                if match.group(1) == ".":
                    names.add(_ESCAPE.sub(r"\1", match.group(2)))
    return names


_STYLE_BLOCK = re.compile(r"(<style\b[^>]*>)(.*?)(</style\s*>)", re.IGNORECASE | re.DOTALL)


def reduce_page_styles(html: str, safelist: Iterable[str | re.Pattern[str]] = ()) -> str:
    """Reduce every ``<style>`` block of a page against that page's markup.

    Blocks whose rules are all unused are removed. Pages without a style
    block are returned unchanged.
    """
    if not _STYLE_BLOCK.search(html):
        return html
    usage = DomUsage.from_html(html)
    patterns = compile_safelist(safelist)

    def _replace(match: re.Match[str]) -> str:
        css = match.group(2)
        reduced = reduce_css(css, usage, patterns)
        if not reduced.strip():
            return ""
        if reduced == css:
            return match.group(0)
        return f"{match.group(1)}{reduced}{match.group(3)}"

    return _STYLE_BLOCK.sub(_replace, html)


__all__ = [
    "DomUsage",
    "UsageIndex",
    "build_usage_index",
    "compile_safelist",
    "reduce_css",
    "stylesheet_classes",
    "reduce_page_styles",
    "strip_dynamic_pseudos",
]
