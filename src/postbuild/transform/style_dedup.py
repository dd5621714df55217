"""Inline style deduplication.

Every inline ``style`` attribute is split into single declarations. Each
distinct declaration becomes one generated class (``h0``, ``h1``, ...) and
the attribute is replaced by references to those classes. The rules are
emitted once, in a single ``<style>`` element.

Class names are deterministic: they follow the order in which declarations
first appear in the document, skipping names the document already uses.
Rules left by an earlier run are read back first so reprocessing a page
reuses its existing classes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from bs4 import BeautifulSoup, Tag

from postbuild.ids import next_class_name
from postbuild.model.document import StyleRule
from postbuild.transform.css_rules import StyleRuleNode, parse_stylesheet

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")


def split_declarations(style: str) -> list[str]:
    """Split a style attribute on ``;`` outside parentheses and quotes."""
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    current: list[str] = []
    for ch in style:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        elif ch == ";" and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def normalize_declaration(declaration: str) -> str | None:
    """Return the ``property:value`` key of one declaration, or None if malformed."""
    prop, sep, value = declaration.partition(":")
    prop = prop.strip().lower()
    value = _WS.sub(" ", value.strip())
    if not sep or not prop or not value:
        return None
    if "url(" not in value.lower():
        value = value.lower()
    return f"{prop}:{value}"


class StyleTable:
    """Declaration key -> StyleRule, in order of first appearance."""

    def __init__(self, prefix: str = "h", taken: Iterable[str] = (), reserved: Iterable[str] = ()) -> None:
        self.prefix = prefix
        self._reserved = frozenset(reserved)
        self._taken = set(taken) | self._reserved
        self._rules: dict[str, StyleRule] = {}
        self._seeded: set[str] = set()
        self._next_index = 0

    def seed(self, rule: StyleRule) -> None:
        """Register a rule that already exists in the document's stylesheet.

        Rules named after a reserved class are ignored.
        """
        if rule.normalized_key in self._rules or rule.class_name in self._reserved:
            return
        self._rules[rule.normalized_key] = rule
        self._seeded.add(rule.normalized_key)
        self._taken.add(rule.class_name)

    def lookup(self, key: str) -> StyleRule | None:
        return self._rules.get(key)

    def get_or_create(self, key: str) -> StyleRule:
        rule = self._rules.get(key)
        if rule is not None:
            return rule
        name, index = next_class_name(self.prefix, self._next_index, self._taken)
        self._next_index = index + 1
        self._taken.add(name)
        rule = StyleRule(normalized_key=key, class_name=name, declaration=key)
        self._rules[key] = rule
        return rule

    def new_rules(self) -> list[StyleRule]:
        return [rule for key, rule in self._rules.items() if key not in self._seeded]

    def __len__(self) -> int:
        return len(self._rules)


def _used_classes(soup: BeautifulSoup) -> set[str]:
    used: set[str] = set()
    for tag in soup.find_all(class_=True):
        used.update(tag.get_attribute_list("class"))
    return used


def seed_from_stylesheets(soup: BeautifulSoup, table: StyleTable) -> int:
    """Seed ``table`` with ``.<prefix>N{decl}`` rules found in ``<style>`` blocks."""
    own_class = re.compile(rf"^\.({re.escape(table.prefix)}[0-9a-z]+)$")
    seeded = 0
    for style in soup.find_all("style"):
        for node in parse_stylesheet(style.get_text()):
            if not isinstance(node, StyleRuleNode) or len(node.selectors) != 1:
                continue
            match = own_class.match(node.selectors[0])
            declarations = split_declarations(node.body)
            if not match or len(declarations) != 1:
                continue
            key = normalize_declaration(declarations[0])
            if key is None:
                continue
            table.seed(StyleRule(normalized_key=key, class_name=match.group(1), declaration=declarations[0]))
            seeded += 1
    return seeded


def _add_classes(tag: Tag, names: Iterable[str]) -> None:
    classes = [c for c in tag.get_attribute_list("class") if c]
    for name in names:
        if name not in classes:
            classes.append(name)
    if classes:
        tag["class"] = classes


def _append_style_block(soup: BeautifulSoup, rules: list[StyleRule]) -> Tag:
    block = soup.new_tag("style")
    block.string = "".join(rule.to_css() for rule in rules)
    head = soup.find("head")
    if isinstance(head, Tag):
        head.append(block)
    else:
        soup.append(block)
    return block


def deduplicate_inline_styles(
    soup: BeautifulSoup,
    prefix: str = "h",
    default_declarations: Iterable[str] = (),
    reserved: Iterable[str] = (),
) -> list[StyleRule]:
    """Replace inline styles with shared classes.

    ``default_declarations`` are declarations made redundant by the page's
    base styling (the highlighter's default foreground and background). Their
    classes are removed from every element and no rule is emitted for them.

    ``reserved`` class names belong to the site's stylesheets and are never
    generated.

    Returns the newly emitted rules.
    """
    styled = soup.find_all(style=True)
    if not styled:
        return []

    table = StyleTable(prefix, taken=_used_classes(soup), reserved=reserved)
    seed_from_stylesheets(soup, table)
    defaults = {key for key in (normalize_declaration(d) for d in default_declarations) if key}

    for tag in styled:
        names: list[str] = []
        for declaration in split_declarations(str(tag.get("style", ""))):
            key = normalize_declaration(declaration)
            if key is None:
                continue
            names.append(table.get_or_create(key).class_name)
        del tag["style"]
        _add_classes(tag, names)

    dropped = {rule.class_name for key in defaults if (rule := table.lookup(key)) is not None}
    if dropped:
        for tag in soup.find_all(class_=True):
            remaining = [c for c in tag.get_attribute_list("class") if c not in dropped]
            if remaining:
                tag["class"] = remaining
            else:
                del tag["class"]

    emitted = [rule for rule in table.new_rules() if rule.normalized_key not in defaults]
    if emitted:
        _append_style_block(soup, emitted)
    logger.debug("Deduplicated %d styled element(s) into %d new rule(s)", len(styled), len(emitted))
    return emitted


__all__ = [
    "StyleTable",
    "deduplicate_inline_styles",
    "normalize_declaration",
    "seed_from_stylesheets",
    "split_declarations",
]
