"""Filesystem access for the site output tree."""

from __future__ import annotations

import os
from pathlib import Path
from tempfile import NamedTemporaryFile

HTML_SUFFIXES = (".html", ".htm")
CSS_SUFFIXES = (".css",)


def discover_files(root: Path) -> tuple[list[Path], list[Path]]:
    """Return the HTML and CSS files below ``root``, sorted by path."""
    html: list[Path] = []
    css: list[Path] = []
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        suffix = path.suffix.lower()
        if suffix in HTML_SUFFIXES:
            html.append(path)
        elif suffix in CSS_SUFFIXES:
            css.append(path)
    return html, css


def read_text(path: Path, *, encoding: str = "utf-8") -> str:
    # newline="" keeps CRLF input byte-for-byte
    with open(path, encoding=encoding, newline="") as fh:
        return fh.read()


def atomic_write_text(path: Path, data: str, *, encoding: str = "utf-8") -> None:
    """Atomically write text to a file by writing to a temp file then replacing.

    The original file is left untouched if anything fails before the replace.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = path.stat().st_mode if path.exists() else None
    with NamedTemporaryFile("w", encoding=encoding, dir=str(path.parent), delete=False, newline="") as tmp:
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            tmp.close()
            os.unlink(tmp.name)
            raise
        tmp_path = Path(tmp.name)
    if mode is not None:
        os.chmod(tmp_path, mode & 0o7777)
    os.replace(tmp_path, path)


__all__ = [
    "CSS_SUFFIXES",
    "HTML_SUFFIXES",
    "atomic_write_text",
    "discover_files",
    "read_text",
]
