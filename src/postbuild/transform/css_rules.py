"""A small CSS rule parser and serializer.

Only the structure needed for selector-level purging is modelled: style
rules (selector list + opaque declaration body), conditional group at-rules
whose bodies are parsed recursively, and every other at-rule kept verbatim.
Comments are dropped. Serialization is compact: ``selector,selector{body}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# At-rules whose block contains further rules
GROUPING_AT_RULES = frozenset({"media", "supports", "container", "layer", "document", "-moz-document", "scope"})


@dataclass
class StyleRuleNode:
    selectors: list[str]
    body: str

    def to_css(self) -> str:
        return f"{','.join(self.selectors)}{{{self.body}}}"


@dataclass
class AtRuleNode:
    """An at-rule.

    - prelude: everything before the block, including the ``@name``
    - children: parsed rules for grouping at-rules, else None
    - body: the raw block text for opaque at-rules, None for statements
    """

    prelude: str
    children: list[CssNode] | None = None
    body: str | None = None
    is_block: bool = field(default=False)

    @property
    def name(self) -> str:
        return self.prelude[1:].split(None, 1)[0].split("(", 1)[0].lower() if self.prelude else ""

    def to_css(self) -> str:
        if not self.is_block:
            return f"{self.prelude};"
        if self.children is not None:
            return f"{self.prelude}{{{serialize_stylesheet(self.children)}}}"
        return f"{self.prelude}{{{self.body or ''}}}"


CssNode = StyleRuleNode | AtRuleNode


def strip_comments(css: str) -> str:
    """Remove ``/* ... */`` comments outside strings."""
    out: list[str] = []
    i = 0
    n = len(css)
    quote: str | None = None
    while i < n:
        ch = css[i]
        if quote:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(css[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in "\"'":
            quote = ch
        elif css.startswith("/*", i):
            end = css.find("*/", i + 2)
            i = n if end == -1 else end + 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _scan(css: str, start: int, stops: str) -> int:
    """Index of the first stop character at nesting depth 0, or len(css)."""
    depth = 0
    quote: str | None = None
    i = start
    n = len(css)
    while i < n:
        ch = css[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]" and depth:
            depth -= 1
        elif depth == 0 and ch in stops:
            return i
        i += 1
    return n


def _matching_brace(css: str, open_index: int) -> int:
    depth = 0
    i = open_index
    n = len(css)
    while i < n:
        i = _scan(css, i, "{}")
        if i >= n:
            return n
        depth += 1 if css[i] == "{" else -1
        if depth == 0:
            return i
        i += 1
    return n


def split_selectors(prelude: str) -> list[str]:
    """Split a selector list on top-level commas."""
    selectors: list[str] = []
    pos = 0
    while pos <= len(prelude):
        end = _scan(prelude, pos, ",")
        selector = " ".join(prelude[pos:end].split())
        if selector:
            selectors.append(selector)
        pos = end + 1
    return selectors


def _parse(css: str) -> list[CssNode]:
    nodes: list[CssNode] = []
    pos = 0
    n = len(css)
    while pos < n:
        stop = _scan(css, pos, "{};")
        prelude = " ".join(css[pos:stop].split())
        if stop >= n:
            if prelude.startswith("@"):
                nodes.append(AtRuleNode(prelude=prelude))
            break
        ch = css[stop]
        if ch == ";":
            if prelude.startswith("@"):
                nodes.append(AtRuleNode(prelude=prelude))
            pos = stop + 1
            continue
        if ch == "}":
            # Stray closing brace
            pos = stop + 1
            continue
        close = _matching_brace(css, stop)
        body = css[stop + 1 : close]
        pos = close + 1
        if prelude.startswith("@"):
            node = AtRuleNode(prelude=prelude, is_block=True)
            if node.name in GROUPING_AT_RULES:
                node.children = _parse(body)
            else:
                node.body = body.strip()
            nodes.append(node)
        elif prelude:
            nodes.append(StyleRuleNode(selectors=split_selectors(prelude), body=body.strip()))
    return nodes


def parse_stylesheet(css: str) -> list[CssNode]:
    """Parse ``css`` into a list of rule nodes."""
    return _parse(strip_comments(css))


def serialize_stylesheet(nodes: list[CssNode]) -> str:
    return "".join(node.to_css() for node in nodes)


__all__ = [
    "GROUPING_AT_RULES",
    "AtRuleNode",
    "CssNode",
    "StyleRuleNode",
    "parse_stylesheet",
    "serialize_stylesheet",
    "split_selectors",
    "strip_comments",
]
