from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from postbuild import site_io
from postbuild.site_io import atomic_write_text, discover_files, read_text


def test_discover_files_sorted_and_split(tmp_path: Path) -> None:
    (tmp_path / "b").mkdir()
    for name in ("b/z.html", "a.HTM", "b/site.css", "robots.txt", "index.html"):
        (tmp_path / name).write_text("x", encoding="utf-8")

    html, css = discover_files(tmp_path)

    assert [p.relative_to(tmp_path).as_posix() for p in html] == ["a.HTM", "b/z.html", "index.html"]
    assert [p.relative_to(tmp_path).as_posix() for p in css] == ["b/site.css"]


def test_read_text_keeps_crlf(tmp_path: Path) -> None:
    path = tmp_path / "a.html"
    path.write_bytes(b"<p>\r\nx</p>")

    assert read_text(path) == "<p>\r\nx</p>"


def test_atomic_write_text_replaces_and_keeps_mode(tmp_path: Path) -> None:
    path = tmp_path / "a.css"
    path.write_text("old", encoding="utf-8")
    os.chmod(path, 0o640)

    atomic_write_text(path, "new\r\n")

    assert path.read_bytes() == b"new\r\n"
    assert stat.S_IMODE(path.stat().st_mode) == 0o640
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.css"]


def test_atomic_write_text_leaves_original_on_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "a.css"
    path.write_text("old", encoding="utf-8")

    def _fail(fd: int) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(site_io.os, "fsync", _fail)

    with pytest.raises(OSError, match="disk full"):
        atomic_write_text(path, "new")

    assert path.read_text(encoding="utf-8") == "old"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.css"]
