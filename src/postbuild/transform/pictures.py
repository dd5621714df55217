"""WebP ``<picture>`` wrapping for local raster images."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import unquote, urlsplit

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

RASTER_SUFFIXES = (".jpg", ".jpeg", ".png")


def resolve_local_image(src: str, page_path: Path, site_root: Path) -> Path | None:
    """Filesystem path of a local image reference, or None for remote/data URLs."""
    parts = urlsplit(src)
    if parts.scheme or parts.netloc or not parts.path:
        return None
    path = unquote(parts.path)
    if path.startswith("/"):
        return site_root / path.lstrip("/")
    return page_path.parent / path


def webp_source(src: str) -> str | None:
    """``src`` with its raster suffix replaced by ``.webp``, query and fragment kept."""
    parts = urlsplit(src)
    lower = parts.path.lower()
    for suffix in RASTER_SUFFIXES:
        if lower.endswith(suffix):
            return parts._replace(path=parts.path[: -len(suffix)] + ".webp").geturl()
    return None


def wrap_webp_pictures(soup: BeautifulSoup, page_path: Path, site_root: Path) -> int:
    """Wrap images that have a ``.webp`` sibling on disk in a ``<picture>``.

    Returns the number of images wrapped.
    """
    wrapped = 0
    for img in soup.find_all("img", src=True):
        if img.find_parent("picture") is not None:
            continue
        src = str(img["src"])
        webp_src = webp_source(src)
        if webp_src is None:
            continue
        local = resolve_local_image(src, page_path, site_root)
        if local is None or not local.with_suffix(".webp").is_file():
            continue
        picture = soup.new_tag("picture")
        source = soup.new_tag("source", srcset=webp_src, type="image/webp")
        img.wrap(picture)
        picture.insert(0, source)
        wrapped += 1
    if wrapped:
        logger.debug("Wrapped %d image(s) in <picture> for %s", wrapped, page_path)
    return wrapped


__all__ = [
    "RASTER_SUFFIXES",
    "resolve_local_image",
    "wrap_webp_pictures",
    "webp_source",
]
