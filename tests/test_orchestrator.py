from __future__ import annotations

import logging
import shutil
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from postbuild.model.pipeline_options import ErrorPolicy, PipelineOptions
from postbuild.pipeline import html_pipeline
from postbuild.pipeline.context import PipelineContext
from postbuild.pipeline.error_handling import PipelineAborted
from postbuild.pipeline.orchestrator import STATUS_WRITTEN, FileJob, RunReport, _record, process_file, run_site

PRODUCTION = {"JEKYLL_ENV": "production"}


def _options(**kwargs) -> PipelineOptions:
    kwargs.setdefault("minify_html", False)
    kwargs.setdefault("webp_pictures", False)
    return PipelineOptions(**kwargs)


def _snapshot(root: Path) -> dict[str, bytes]:
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


def _break_span_compress(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(soup, passes=2):
        raise RuntimeError("merge failed")

    monkeypatch.setattr(html_pipeline, "compress_spans", _boom)


def test_inactive_build_touches_nothing(site: Path) -> None:
    before = _snapshot(site)

    report = run_site(site, _options(), environ={"JEKYLL_ENV": "development"})

    assert not report.active
    assert report.results == []
    assert _snapshot(site) == before


def test_production_run_rewrites_site(site: Path) -> None:
    report = run_site(site, _options(), environ=PRODUCTION)

    assert report.ok
    assert [(r.kind, r.path.relative_to(site).as_posix()) for r in report.results] == [
        ("html", "index.html"),
        ("html", "posts/notes.html"),
        ("css", "assets/main.css"),
    ]
    assert report.written == 3
    assert 'id="fn:1"' in (site / "posts" / "notes.html").read_text(encoding="utf-8")
    assert (site / "assets" / "main.css").read_text(encoding="utf-8") == "body{margin:0}.footnotes{font-size:80%}"


def test_second_run_changes_nothing(site: Path) -> None:
    run_site(site, _options(), environ=PRODUCTION)
    before = _snapshot(site)

    report = run_site(site, _options(), environ=PRODUCTION)

    assert report.written == 0
    assert report.unchanged == 3
    assert _snapshot(site) == before


def test_force_overrides_environment(site: Path) -> None:
    report = run_site(site, _options(force=True), environ={})

    assert report.active
    assert report.written == 3


def test_passes_can_be_disabled(site: Path) -> None:
    report = run_site(site, _options(process_html=False), environ=PRODUCTION)

    assert [r.kind for r in report.results] == ["css"]


def test_continue_policy_records_failures(
    site: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    _break_span_compress(monkeypatch)
    before = _snapshot(site)

    with caplog.at_level(logging.ERROR):
        report = run_site(site, _options(), environ=PRODUCTION)

    assert not report.ok
    assert [f.stage for f in report.failures] == ["span_compress", "span_compress"]
    assert "merge failed" in report.failures[0].error
    # Failed pages keep their original content; CSS still runs
    assert (site / "index.html").read_bytes() == before["index.html"]
    assert report.results[-1].kind == "css"
    codes = [getattr(r, "event_code", None) for r in caplog.records]
    assert codes.count("FILE-001") == 2


def test_abort_policy_stops_the_run(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _break_span_compress(monkeypatch)
    before = _snapshot(site)

    with pytest.raises(PipelineAborted) as excinfo:
        run_site(site, _options(error_policy=ErrorPolicy.ABORT), environ=PRODUCTION)

    report = excinfo.value.report
    assert report.aborted
    assert len(report.results) == 1
    assert excinfo.value.failure.stage == "span_compress"
    assert _snapshot(site) == before


def test_progress_events(site: Path) -> None:
    events: list[tuple[str, dict]] = []

    run_site(site, _options(), environ=PRODUCTION, progress=lambda e, p: events.append((e, p)))

    names = [e for e, _ in events]
    assert names == ["html:start", "html:file", "html:file", "html:done", "css:start", "css:file", "css:done"]
    assert events[0][1] == {"files": 2}


def test_failing_progress_callback_does_not_break_run(site: Path) -> None:
    def _broken(event: str, payload: dict) -> None:
        raise RuntimeError("display gone")

    report = run_site(site, _options(), environ=PRODUCTION, progress=_broken)

    assert report.ok


def test_worker_pool_matches_sequential(site: Path, tmp_path: Path) -> None:
    sequential_site = tmp_path / "sequential"
    shutil.copytree(site, sequential_site)

    report = run_site(site, _options(workers=2), environ=PRODUCTION)
    run_site(sequential_site, _options(), environ=PRODUCTION)

    assert report.ok
    assert [r.path.name for r in report.results] == ["index.html", "notes.html", "main.css"]
    assert _snapshot(site) == _snapshot(sequential_site)


def test_process_file_reports_read_failure(context: PipelineContext, tmp_path: Path) -> None:
    result = process_file(FileJob(path=tmp_path / "missing.html", kind="html"), context)

    assert not result.ok
    assert result.stage == "read"


def test_generated_classes_avoid_site_stylesheet_classes(site: Path) -> None:
    css = ".h2{font-size:2rem;margin:3em}.h3{font-size:1.5rem}\n"
    (site / "assets" / "main.css").write_text(css, encoding="utf-8")

    report = run_site(site, _options(), environ=PRODUCTION)

    assert report.ok
    soup = BeautifulSoup((site / "index.html").read_text(encoding="utf-8"), "html.parser")
    generated = {c for span in soup.pre.find_all("span") for c in span.get_attribute_list("class")}
    assert generated
    assert not generated & {"h2", "h3"}


def test_grown_html_is_written_with_a_warning(
    context: PipelineContext, code_page: str, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    page = tmp_path / "index.html"
    page.write_text(code_page, encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="postbuild.pipeline.orchestrator"):
        report = RunReport(root=tmp_path)
        result = process_file(FileJob(path=page, kind="html"), context)
        _record(result, report, context.options, None)

    assert result.status == STATUS_WRITTEN
    assert result.bytes_out > result.bytes_in
    assert page.read_text(encoding="utf-8") != code_page
    assert report.bytes_saved < 0
    assert "output grew" in caplog.text
