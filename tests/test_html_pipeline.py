from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from postbuild.model.pipeline_options import PipelineOptions
from postbuild.pipeline import html_pipeline
from postbuild.pipeline.context import PipelineContext
from postbuild.pipeline.error_handling import StageError
from postbuild.pipeline.html_pipeline import process_html

CODE = 'def greet(name):\n    return "hi " + name\n'

ABBR_PAGE = """<html><head></head><body>
<p>The HTML standard.</p>
<p>*[HTML]: Hyper Text Markup Language</p>
</body></html>"""


def test_code_page_is_highlighted_with_shared_classes(context: PipelineContext, code_page: str) -> None:
    out = process_html(code_page, context)
    soup = BeautifulSoup(out, "html.parser")

    assert ' style="' not in out
    assert soup.pre.code.get_attribute_list("class") == ["language-python"]
    assert soup.pre.get_text() == CODE
    # Theme defaults carry no class; everything else resolves to a generated rule
    assert soup.find("code", class_=False).string == "print"
    styles = soup.head.find_all("style")
    assert len(styles) == 1
    rules = styles[0].string
    for span in soup.pre.find_all("span"):
        for cls in span.get_attribute_list("class"):
            assert f".{cls}{{" in rules


def test_footnotes_and_abbreviations(context: PipelineContext, footnote_page: str) -> None:
    footnotes = process_html(footnote_page, context)
    abbreviations = process_html(ABBR_PAGE, context)

    assert 'id="fn:1"' in footnotes
    assert 'href="#fn:2"' in footnotes
    assert '<abbr title="Hyper Text Markup Language">HTML</abbr>' in abbreviations
    assert "*[HTML]" not in abbreviations


def test_external_links_are_marked(context: PipelineContext) -> None:
    out = process_html('<p><a href="https://example.org">x</a></p>', context)

    assert 'target="_blank"' in out
    assert 'rel="noopener noreferrer"' in out


def test_untouched_page_is_returned_as_is(context: PipelineContext) -> None:
    html = "<html><body><p>plain   text</p></body></html>"

    assert process_html(html, context) is html


@pytest.mark.parametrize("fixture_name", ["code_page", "footnote_page"])
def test_processing_is_idempotent(
    context: PipelineContext, fixture_name: str, request: pytest.FixtureRequest
) -> None:
    page = request.getfixturevalue(fixture_name)
    once = process_html(page, context)
    twice = process_html(once, context)

    assert twice == once


def test_minified_output_keeps_code(code_page: str) -> None:
    ctx = PipelineContext.create(PipelineOptions(force=True, webp_pictures=False))

    out = process_html(code_page, ctx)

    assert "\n<p>" not in out
    assert out.lower().startswith("<!doctype html>")
    assert BeautifulSoup(out, "html.parser").pre.get_text() == CODE
    assert process_html(out, ctx) == out


def test_stage_failure_is_attributed(context: PipelineContext, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(soup, passes=2):
        raise RuntimeError("merge failed")

    monkeypatch.setattr(html_pipeline, "compress_spans", _boom)

    with pytest.raises(StageError) as excinfo:
        process_html("<p>x</p>", context)

    assert excinfo.value.stage == "span_compress"
    assert isinstance(excinfo.value.cause, RuntimeError)


def test_author_spans_outside_code_survive(context: PipelineContext, code_page: str) -> None:
    author = (
        '<p><a href="/x"><span class="icon-twitter"></span></a> '
        '<span lang="fr" title="French">bonjour</span> <span aria-hidden="true">*</span></p>\n'
        '<p><span class="badge">new</span> <span class="badge">beta</span></p>\n'
    )
    page = code_page.replace("<p>Use", author + "<p>Use")

    out = process_html(page, context)

    assert '<span class="icon-twitter"></span>' in out
    assert '<span lang="fr" title="French">bonjour</span>' in out
    assert '<span aria-hidden="true">*</span>' in out
    assert '<span class="badge">new</span> <span class="badge">beta</span>' in out
    assert "<span" in str(BeautifulSoup(out, "html.parser").pre)
