"""Per-document data model shared by the transform stages.

Everything here is scoped to a single HTML file: it is created when the
file's processing starts and discarded once the file has been serialized.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_LANGUAGE = "text"


@dataclass
class FootnoteEntry:
    """A footnote body collected from a container with a purely numeric id.

    - id: the numeric identifier shared by the reference and the body
    - body_nodes: the body's child nodes in document order
    """

    id: str
    body_nodes: list[Any] = field(default_factory=list)

    @property
    def item_id(self) -> str:
        return f"fn:{self.id}"

    @property
    def ref_id(self) -> str:
        return f"fnref:{self.id}"


class AbbreviationTable(Mapping[str, str]):
    """Immutable mapping of abbreviation term -> definition.

    Built once per document from the definition lines, then only read while
    terms are substituted. Iteration follows definition order.
    """

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        entries: dict[str, str] = {}
        for term, definition in pairs:
            entries[term] = definition
        self._entries = entries

    def __getitem__(self, term: str) -> str:
        return self._entries[term]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"AbbreviationTable({self._entries!r})"


@dataclass(frozen=True)
class StyleRule:
    """A single deduplicated CSS declaration and the class that carries it."""

    normalized_key: str
    class_name: str
    declaration: str

    def to_css(self) -> str:
        return f".{self.class_name}{{{self.declaration}}}"


@dataclass(frozen=True)
class CodeBlockDescriptor:
    raw_code: str
    language: str = DEFAULT_LANGUAGE
    is_inline: bool = False


@dataclass
class DocumentState:
    """Mutable state owned by the processing of one document."""

    path: Path | None = None
    abbreviations: AbbreviationTable = field(default_factory=AbbreviationTable)
    footnotes: list[FootnoteEntry] = field(default_factory=list)
    style_rules: list[StyleRule] = field(default_factory=list)
    highlight_failures: int = 0

    @property
    def label(self) -> str:
        return str(self.path) if self.path is not None else "<memory>"


__all__ = [
    "DEFAULT_LANGUAGE",
    "AbbreviationTable",
    "CodeBlockDescriptor",
    "DocumentState",
    "FootnoteEntry",
    "StyleRule",
]
