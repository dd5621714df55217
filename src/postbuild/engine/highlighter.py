"""Highlighter adapter around Pygments.

The adapter turns ``(code, language)`` into a themed ``<pre><code>`` block
whose presentation lives entirely in inline ``style`` attributes. Style
deduplication later turns those into shared classes.

The Pygments style and formatter are loaded once per Highlighter; loading is
guarded by a lock so concurrent first calls initialize it only once.
"""

from __future__ import annotations

import html
import logging
import re
import threading
from dataclasses import dataclass

from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.style import StyleMeta
from pygments.styles import get_style_by_name
from pygments.token import Token
from pygments.util import ClassNotFound

from postbuild.model.document import DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)

# Pygments terminates the last line even when the source did not
_TRAILING_NEWLINE = re.compile(r"\n((?:</span>)*)\Z")


@dataclass(frozen=True)
class ThemeColors:
    background: str | None
    foreground: str | None

    def top_level_style(self) -> str:
        parts: list[str] = []
        if self.background:
            parts.append(f"background-color: {self.background}")
        if self.foreground:
            parts.append(f"color: {self.foreground}")
        return "; ".join(parts)


def _webify(color: str | None) -> str | None:
    if not color:
        return None
    if color.startswith(("#", "var", "calc")):
        return color
    return f"#{color}"


class Highlighter:
    """Themed, inline-styled syntax highlighting for code blocks."""

    def __init__(self, theme: str = "monokai") -> None:
        self.theme = theme
        self._lock = threading.Lock()
        self._style: StyleMeta | None = None
        self._formatter: HtmlFormatter | None = None
        self._colors: ThemeColors | None = None

    @property
    def loaded(self) -> bool:
        return self._formatter is not None

    def load(self) -> None:
        """Load the theme and formatter. Safe to call repeatedly.

        Raises:
            ValueError: If the theme is not a known Pygments style
        """
        if self._formatter is not None:
            return
        with self._lock:
            if self._formatter is not None:
                return
            try:
                style = get_style_by_name(self.theme)
            except ClassNotFound as exc:
                raise ValueError(f"Unknown highlighting theme '{self.theme}'") from exc
            token_style = style.style_for_token(Token)
            self._colors = ThemeColors(
                background=_webify(style.background_color),
                foreground=_webify(token_style.get("color")),
            )
            self._style = style
            self._formatter = HtmlFormatter(style=style, noclasses=True, nowrap=True)
            logger.debug("Loaded highlighting theme %s", self.theme)

    @property
    def colors(self) -> ThemeColors:
        self.load()
        if self._colors is None:
            raise RuntimeError(f"Highlighting theme '{self.theme}' has no colors")
        return self._colors

    def resolve_language(self, language: str | None) -> str:
        """Return ``language`` if Pygments knows it, else the plain-text default."""
        if not language:
            return DEFAULT_LANGUAGE
        try:
            get_lexer_by_name(language)
        except ClassNotFound:
            return DEFAULT_LANGUAGE
        return language

    def plain(self, code: str, language: str = DEFAULT_LANGUAGE) -> str:
        """Render ``code`` escaped, without token highlighting."""
        return self._wrap(html.escape(code), language)

    def highlight(self, code: str, language: str) -> str:
        """Highlight ``code`` as ``language``.

        Unknown languages fall back to escaped plain text; this never raises
        for an unrecognized language name.
        """
        self.load()
        formatter = self._formatter
        if formatter is None:
            raise RuntimeError(f"Highlighting theme '{self.theme}' is not loaded")
        try:
            lexer = get_lexer_by_name(language, stripnl=False, ensurenl=False)
        except ClassNotFound:
            logger.debug("No lexer for language %r; rendering as plain text", language)
            return self.plain(code, DEFAULT_LANGUAGE)
        body = pygments_highlight(code, lexer, formatter)
        if not code.endswith("\n"):
            body = _TRAILING_NEWLINE.sub(r"\1", body)
        return self._wrap(body, language)

    def _wrap(self, body: str, language: str) -> str:
        style = self.colors.top_level_style()
        style_attr = f' style="{style}"' if style else ""
        return f'<pre{style_attr}><code class="language-{html.escape(language)}">{body}</code></pre>'


__all__ = ["Highlighter", "ThemeColors"]
