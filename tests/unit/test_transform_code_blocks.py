from __future__ import annotations

import logging

import pytest
from bs4 import BeautifulSoup

from postbuild.engine.highlighter import Highlighter
from postbuild.transform.code_blocks import convert_code_blocks, describe_code_block, detect_language


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


@pytest.fixture(scope="module")
def highlighter() -> Highlighter:
    h = Highlighter("monokai")
    h.load()
    return h


@pytest.mark.parametrize(
    "html, expected",
    [
        ('<pre><code class="language-python">x</code></pre>', "python"),
        ('<pre><code class="lang-Ruby">x</code></pre>', "ruby"),
        ('<pre><code data-lang="bash" class="language-python">x</code></pre>', "bash"),
        ('<pre class="language-js"><code>x</code></pre>', "js"),
        ('<pre><code class="highlight">x</code></pre>', "text"),
        ("<p><code>x</code></p>", "text"),
    ],
)
def test_detect_language(html: str, expected: str) -> None:
    assert detect_language(_soup(html).code) == expected


def test_describe_code_block(highlighter: Highlighter) -> None:
    block = describe_code_block(_soup('<pre><code class="language-nope">a &lt; b</code></pre>').code, highlighter)
    inline = describe_code_block(_soup("<p><code>x</code></p>").code, highlighter)

    assert block.raw_code == "a < b"
    assert block.language == "text"
    assert not block.is_inline
    assert inline.is_inline


def test_block_is_replaced_by_highlighted_pre(highlighter: Highlighter) -> None:
    soup = _soup('<div><pre class="old"><code class="language-python">def f():\n    pass\n</code></pre></div>')

    stats = convert_code_blocks(soup, highlighter)

    assert (stats.blocks, stats.inline, stats.failures) == (1, 0, 0)
    pre = soup.find("pre")
    assert pre.parent.name == "div"
    assert "old" not in pre.get_attribute_list("class")
    assert pre["style"] == "background-color: #272822; color: #f8f8f2"
    assert pre.code.get_attribute_list("class") == ["language-python"]
    assert pre.find("span", style=True) is not None
    assert pre.get_text() == "def f():\n    pass\n"


def test_inline_code_gets_top_level_style(highlighter: Highlighter) -> None:
    soup = _soup("<p>Use <code>print</code> here.</p>")

    stats = convert_code_blocks(soup, highlighter)

    assert stats.inline == 1
    assert soup.code["style"] == "background-color: #272822; color: #f8f8f2"
    assert soup.code.string == "print"


def test_unknown_language_is_rendered_as_text(highlighter: Highlighter) -> None:
    soup = _soup('<pre><code class="language-klingon">a &amp; b</code></pre>')

    convert_code_blocks(soup, highlighter)

    assert soup.code.get_attribute_list("class") == ["language-text"]
    assert soup.code.get_text() == "a & b"


def test_highlight_failure_falls_back_to_plain(
    highlighter: Highlighter, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    def _boom(code: str, language: str) -> str:
        raise RuntimeError("lexer exploded")

    monkeypatch.setattr(highlighter, "highlight", _boom)
    soup = _soup('<pre><code class="language-python">x = 1 &lt; 2</code></pre><pre><code>ok</code></pre>')

    with caplog.at_level(logging.WARNING):
        stats = convert_code_blocks(soup, highlighter)

    assert stats.failures == 2
    assert stats.blocks == 2
    first = soup.find("pre")
    assert first.code.get_attribute_list("class") == ["language-text"]
    assert first.get_text() == "x = 1 < 2"
    assert first.find("span") is None
    records = [r for r in caplog.records if getattr(r, "event_code", None) == "HIGHLIGHT-001"]
    assert len(records) == 2
    assert records[0].snippet == "x = 1 < 2"
    assert records[0].exception_class == "RuntimeError"


def test_document_without_code_is_untouched(highlighter: Highlighter) -> None:
    html = "<p>nothing here</p>"
    soup = _soup(html)

    stats = convert_code_blocks(soup, highlighter)

    assert (stats.blocks, stats.inline) == (0, 0)
    assert str(soup) == html


def test_highlighter_output_without_pre_is_rejected(
    highlighter: Highlighter, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(highlighter, "highlight", lambda code, language: "<div>x</div>")
    soup = _soup('<pre><code class="language-python">x</code></pre>')

    with pytest.raises(ValueError, match="no <pre> element"):
        convert_code_blocks(soup, highlighter)
