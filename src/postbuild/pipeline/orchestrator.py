"""Run the postbuild pipeline over a site's output tree.

The run has two passes. Every HTML file goes through the HTML pipeline
first; every CSS file is then reduced against the processed HTML corpus.
Files are independent, so each pass can be spread over a process pool. Each
worker process builds its own PipelineContext once, through the pool
initializer.

A file is only written after all of its stages succeeded, and the write is
atomic. What happens to the remaining files after a failure is decided by
``PipelineOptions.error_policy``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from postbuild.model.pipeline_options import ErrorPolicy, PipelineOptions
from postbuild.pipeline.context import PipelineContext
from postbuild.pipeline.css_pipeline import process_css
from postbuild.pipeline.error_handling import (
    ErrorContext,
    ErrorManager,
    PipelineAborted,
    PipelineError,
    StageError,
)
from postbuild.pipeline.feature_logger import log_error_policy, log_pipeline_configuration
from postbuild.pipeline.html_pipeline import process_html, stage
from postbuild.site_io import atomic_write_text, discover_files, read_text
from postbuild.transform.css_usage import UsageIndex, stylesheet_classes

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]

STATUS_WRITTEN = "written"
STATUS_UNCHANGED = "unchanged"
STATUS_KEPT = "kept"
STATUS_FAILED = "failed"


@dataclass
class FileJob:
    path: Path
    kind: str


@dataclass
class FileResult:
    """Outcome of processing one file."""

    path: Path
    kind: str
    status: str = STATUS_UNCHANGED
    stage: str | None = None
    error: str | None = None
    bytes_in: int = 0
    bytes_out: int = 0
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != STATUS_FAILED


@dataclass
class RunReport:
    root: Path
    active: bool = True
    aborted: bool = False
    results: list[FileResult] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def written(self) -> int:
        return self._count(STATUS_WRITTEN)

    @property
    def unchanged(self) -> int:
        return self._count(STATUS_UNCHANGED)

    @property
    def kept(self) -> int:
        return self._count(STATUS_KEPT)

    @property
    def failures(self) -> list[FileResult]:
        return [r for r in self.results if r.status == STATUS_FAILED]

    @property
    def ok(self) -> bool:
        return not self.aborted and not self.failures

    @property
    def bytes_saved(self) -> int:
        return sum(r.bytes_in - r.bytes_out for r in self.results if r.status == STATUS_WRITTEN)

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": str(self.root),
            "active": self.active,
            "aborted": self.aborted,
            "files": len(self.results),
            "written": self.written,
            "unchanged": self.unchanged,
            "kept": self.kept,
            "failed": len(self.failures),
            "bytes_saved": self.bytes_saved,
        }


def process_file(job: FileJob, ctx: PipelineContext, usage: UsageIndex | None = None) -> FileResult:
    """Read, transform and write back one file. Never raises for stage failures."""
    start = time.perf_counter()
    result = FileResult(path=job.path, kind=job.kind)
    try:
        with stage("read", job.path):
            text = read_text(job.path)
        result.bytes_in = len(text.encode("utf-8"))

        if job.kind == "html":
            output = process_html(text, ctx, job.path)
        else:
            output = process_css(text, ctx, usage if usage is not None else UsageIndex(), job.path)
        result.bytes_out = len(output.encode("utf-8"))

        if output == text:
            result.status = STATUS_UNCHANGED
        elif job.kind == "css" and result.bytes_out > result.bytes_in:
            result.status = STATUS_KEPT
        else:
            with stage("write", job.path):
                atomic_write_text(job.path, output)
            result.status = STATUS_WRITTEN
    except StageError as exc:
        result.status = STATUS_FAILED
        result.stage = exc.stage
        result.error = str(exc.cause) if exc.cause is not None else str(exc)
    result.elapsed = time.perf_counter() - start
    return result


# Worker-process state, set once by the pool initializer
_WORKER_CONTEXT: PipelineContext | None = None
_WORKER_USAGE: UsageIndex | None = None


def _init_worker(
    options: PipelineOptions,
    site_root: Path,
    usage: UsageIndex | None = None,
    reserved_classes: frozenset[str] = frozenset(),
) -> None:
    global _WORKER_CONTEXT, _WORKER_USAGE
    _WORKER_CONTEXT = PipelineContext.create(options, site_root, reserved_classes)
    _WORKER_USAGE = usage


def _process_in_worker(job: FileJob) -> FileResult:
    if _WORKER_CONTEXT is None:
        raise RuntimeError("worker process was not initialized")
    return process_file(job, _WORKER_CONTEXT, _WORKER_USAGE)


def _emit(progress: ProgressCallback | None, event: str, payload: dict[str, Any]) -> None:
    if progress is None:
        return
    try:
        progress(event, payload)
    except Exception:
        logger.debug("Progress callback failed for %s", event, exc_info=True)


def _sort_results(report: RunReport) -> None:
    order = {"html": 0, "css": 1}
    report.results.sort(key=lambda r: (order.get(r.kind, 2), str(r.path)))


def _record(
    result: FileResult,
    report: RunReport,
    options: PipelineOptions,
    progress: ProgressCallback | None,
) -> None:
    report.results.append(result)
    _emit(
        progress,
        f"{result.kind}:file",
        {"path": str(result.path), "status": result.status, "elapsed": result.elapsed},
    )

    if result.status == STATUS_KEPT:
        logger.warning("%s: reduced stylesheet is larger than the input; kept the original", result.path)
    elif result.status == STATUS_WRITTEN and result.bytes_out > result.bytes_in:
        logger.warning("%s: output grew from %d to %d bytes", result.path, result.bytes_in, result.bytes_out)

    if result.ok:
        return

    failure = StageError(result.stage or "unknown", result.path, PipelineError(result.error or "unknown error"))
    errors = ErrorManager(ErrorContext(path=result.path, stage=result.stage, object_kind=result.kind))
    errors.error("FILE-001", str(failure), exception=failure)
    if options.error_policy is ErrorPolicy.ABORT:
        log_error_policy("Pipeline", "stage_failed", "abort", str(result.path))
        report.aborted = True
        _sort_results(report)
        raise PipelineAborted(failure, report)
    log_error_policy("Pipeline", "stage_failed", "continue", str(result.path))


def _run_pass(
    kind: str,
    paths: list[Path],
    ctx: PipelineContext,
    report: RunReport,
    progress: ProgressCallback | None,
    usage: UsageIndex | None = None,
) -> None:
    options = ctx.options
    jobs = [FileJob(path=p, kind=kind) for p in paths]
    _emit(progress, f"{kind}:start", {"files": len(jobs)})

    if options.workers <= 1 or len(jobs) <= 1:
        for job in jobs:
            _record(process_file(job, ctx, usage), report, options, progress)
    else:
        workers = min(options.workers, len(jobs))
        logger.info("Processing %d %s file(s) with %d workers", len(jobs), kind, workers)
        pool = ProcessPoolExecutor(
            max_workers=workers,
            initializer=_init_worker,
            initargs=(options, report.root, usage, ctx.reserved_classes),
        )
        try:
            futures = {pool.submit(_process_in_worker, job): job for job in jobs}
            for future in as_completed(futures):
                job = futures[future]
                try:
                    result = future.result()
                except Exception as exc:
                    result = FileResult(path=job.path, kind=kind, status=STATUS_FAILED, stage="worker", error=str(exc))
                _record(result, report, options, progress)
        finally:
            pool.shutdown(wait=True, cancel_futures=True)

    _sort_results(report)
    _emit(progress, f"{kind}:done", {"files": len(jobs)})


def _load_corpus(paths: list[Path]) -> UsageIndex:
    usage = UsageIndex()
    for path in paths:
        try:
            usage.add_document(read_text(path))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping %s as usage reference: %s", path, exc)
    return usage


def _load_site_classes(paths: list[Path]) -> frozenset[str]:
    names: set[str] = set()
    for path in paths:
        try:
            names.update(stylesheet_classes(read_text(path)))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping %s as class name reference: %s", path, exc)
    return frozenset(names)


def run_site(
    root: Path,
    options: PipelineOptions,
    *,
    environ: Mapping[str, str] | None = None,
    progress: ProgressCallback | None = None,
) -> RunReport:
    """Rewrite every HTML and CSS file below ``root`` in place.

    Returns a report with one FileResult per file, ordered by pass and path.
    Outside a production build (see ``PipelineOptions.is_active``) no file is
    touched and the report is marked inactive.

    Raises:
        PipelineAborted: If a file fails under ErrorPolicy.ABORT
        ValueError: If the configured theme cannot be loaded
    """
    report = RunReport(root=root)
    if not options.is_active(environ):
        ErrorManager(ErrorContext(path=root, source_module=__name__)).decision(
            "RUN-001",
            "postbuild",
            "skipped",
            extra={"env_var": options.env_var, "production_value": options.production_value},
        )
        report.active = False
        return report

    log_pipeline_configuration(options)
    html_files, css_files = discover_files(root)
    logger.info("Found %d HTML and %d CSS file(s) under %s", len(html_files), len(css_files), root)

    ctx = PipelineContext.create(options, root, _load_site_classes(css_files))

    if options.process_html and html_files:
        _run_pass("html", html_files, ctx, report, progress)

    if options.process_css and css_files:
        usage = _load_corpus(html_files)
        logger.debug("Usage index holds %d token(s)", len(usage))
        _run_pass("css", css_files, ctx, report, progress, usage)

    logger.info(
        "Postbuild finished: %d written, %d unchanged, %d failed",
        report.written,
        report.unchanged,
        len(report.failures),
    )
    return report


__all__ = [
    "FileJob",
    "FileResult",
    "RunReport",
    "process_file",
    "run_site",
]
