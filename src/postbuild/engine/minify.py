"""HTML and CSS minification.

CSS goes through rcssmin and HTML through htmlmin. Empty attributes are
dropped on the BeautifulSoup tree before the HTML minifier runs, since
htmlmin only shortens them.

Both entry points translate any failure into an ExternalToolError so the
orchestrator can attribute it to a stage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import htmlmin
import rcssmin
from bs4 import BeautifulSoup, Tag

from postbuild.pipeline.error_handling import ExternalToolError

logger = logging.getLogger(__name__)

WHITESPACE_SENSITIVE = ("pre", "textarea", "script", "style")
EMPTY_REMOVABLE_ATTRIBUTES = ("class", "style", "id", "title", "lang", "dir")


@dataclass(frozen=True)
class HtmlMinifyOptions:
    collapse_whitespace: bool = True
    remove_comments: bool = True
    remove_empty_attributes: bool = True
    remove_attribute_quotes: bool = True

    def htmlmin_kwargs(self) -> dict[str, object]:
        """Keyword arguments for ``htmlmin.minify``."""
        return {
            "remove_comments": self.remove_comments,
            "remove_empty_space": self.collapse_whitespace,
            "remove_all_empty_space": False,
            "reduce_empty_attributes": True,
            "reduce_boolean_attributes": False,
            "remove_optional_attribute_quotes": self.remove_attribute_quotes,
            "keep_pre": False,
            "pre_tags": WHITESPACE_SENSITIVE,
        }


def strip_empty_attributes(soup: BeautifulSoup | Tag) -> int:
    """Delete ``class``/``style``/``id``/... attributes whose value is empty."""
    removed = 0
    for tag in soup.find_all(True):
        for name in EMPTY_REMOVABLE_ATTRIBUTES:
            if name not in tag.attrs:
                continue
            value = tag.attrs[name]
            if isinstance(value, list):
                value = " ".join(value)
            if not str(value).strip():
                del tag.attrs[name]
                removed += 1
    return removed


def minify_html(text: str, options: HtmlMinifyOptions | None = None) -> str:
    """Minify an HTML document, keeping ``pre`` and ``textarea`` content as-is."""
    opts = options or HtmlMinifyOptions()
    try:
        if opts.remove_empty_attributes:
            soup = BeautifulSoup(text, "html.parser")
            if strip_empty_attributes(soup):
                text = str(soup)
        return htmlmin.minify(text, **opts.htmlmin_kwargs()).strip()
    except Exception as exc:
        raise ExternalToolError("htmlmin", exc) from exc


def minify_css(css: str) -> str:
    """Minify a stylesheet."""
    try:
        return rcssmin.cssmin(css)
    except Exception as exc:
        raise ExternalToolError("rcssmin", exc) from exc


__all__ = [
    "HtmlMinifyOptions",
    "minify_css",
    "minify_html",
    "strip_empty_attributes",
]
