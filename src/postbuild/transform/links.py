"""External link marking."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

EXTERNAL_REL = ("noopener", "noreferrer")


def _normalize_host(host: str) -> str:
    host = host.lower().rstrip(".")
    return host[4:] if host.startswith("www.") else host


def is_external(href: str, site_host: str | None = None) -> bool:
    """True for absolute http(s) URLs that point away from ``site_host``."""
    try:
        parts = urlsplit(href.strip())
    except ValueError:
        return False
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return False
    if not site_host:
        return True
    return _normalize_host(parts.hostname) != _normalize_host(site_host)


def mark_external_links(soup: BeautifulSoup, site_host: str | None = None) -> int:
    """Open external links in a new tab without leaking the opener.

    Existing ``target`` values are kept; ``rel`` tokens are extended, never
    replaced. Returns the number of anchors modified.
    """
    changed = 0
    for anchor in soup.find_all("a", href=True):
        if not is_external(str(anchor["href"]), site_host):
            continue
        before = (anchor.get("target"), list(anchor.get("rel", [])))
        if not anchor.get("target"):
            anchor["target"] = "_blank"
        rel = list(anchor.get("rel", []))
        rel.extend(token for token in EXTERNAL_REL if token not in rel)
        anchor["rel"] = rel
        if (anchor.get("target"), list(anchor["rel"])) != before:
            changed += 1
    logger.debug("Marked %d external link(s)", changed)
    return changed


__all__ = ["EXTERNAL_REL", "is_external", "mark_external_links"]
