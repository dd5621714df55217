"""Error taxonomy and structured error logging for the postbuild pipeline.

Failures fall into four groups:

- highlighting failures: recovered inside the code block stage, the block is
  rendered unhighlighted and the snippet is logged
- structural mismatches: footnote references without bodies (or the other way
  round) are left untouched and logged as warnings
- stage and external tool failures: raised as StageError for the file being
  processed; the file is not written
- no-op conditions: never errors
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from postbuild.pipeline.feature_logger import log_feature_decision

logger = logging.getLogger(__name__)

_SNIPPET_LIMIT = 60


def _shorten(text: str, limit: int = _SNIPPET_LIMIT) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 10] + "..."


class PipelineError(Exception):
    """Base class for postbuild pipeline errors."""


class HighlightError(PipelineError):
    """Raised when a code block cannot be highlighted."""

    def __init__(self, language: str, snippet: str, cause: Exception | None = None) -> None:
        self.language = language
        self.snippet = snippet
        self.cause = cause
        message = f"Failed to highlight {language} block '{_shorten(snippet)}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ExternalToolError(PipelineError):
    """Raised when an external minifier or purger fails."""

    def __init__(self, tool: str, cause: Exception | None = None) -> None:
        self.tool = tool
        self.cause = cause
        message = f"External tool '{tool}' failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class StageError(PipelineError):
    """A pipeline stage failed for one file."""

    def __init__(self, stage: str, path: Path | str | None = None, cause: Exception | None = None) -> None:
        self.stage = stage
        self.path = path
        self.cause = cause
        message = f"Stage '{stage}' failed"
        if path is not None:
            message += f" for {path}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class PipelineAborted(PipelineError):
    """Raised when the abort policy stops a run after a file failure."""

    def __init__(self, failure: StageError, report: Any = None) -> None:
        self.failure = failure
        self.report = report
        super().__init__(f"Run aborted: {failure}")


@dataclass
class ErrorContext:
    """Context attached to every structured log record."""

    path: Path | None = None
    stage: str | None = None
    source_module: str | None = None
    object_kind: str | None = None
    object_id: str | None = None
    flags: dict[str, Any] = field(default_factory=dict)
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path) if self.path is not None else None,
            "stage": self.stage,
            "source_module": self.source_module,
            "object_kind": self.object_kind,
            "object_id": self.object_id,
            "flags": self.flags,
            "correlation_id": self.correlation_id,
        }


class ErrorManager:
    """Emit warnings, errors and decisions as structured log records."""

    def __init__(self, context: ErrorContext | None = None) -> None:
        self.context = context or ErrorContext()

    def _extra(self, event_code: str, extra: dict[str, Any] | None, exception: Exception | None) -> dict[str, Any]:
        data: dict[str, Any] = {"event_code": event_code}
        data.update(self.context.to_dict())
        if extra:
            data.update(extra)
        if exception is not None:
            data["exception_class"] = type(exception).__name__
            data["exception_message"] = str(exception)
        return data

    def warn(
        self,
        event_code: str,
        message: str,
        *,
        extra: dict[str, Any] | None = None,
        exception: Exception | None = None,
    ) -> None:
        logger.warning("%s: %s", event_code, message, extra=self._extra(event_code, extra, exception))

    def error(
        self,
        event_code: str,
        message: str,
        *,
        extra: dict[str, Any] | None = None,
        exception: Exception | None = None,
    ) -> None:
        logger.error("%s: %s", event_code, message, extra=self._extra(event_code, extra, exception))

    def decision(
        self,
        event_code: str,
        key: str,
        value: Any,
        *,
        extra: dict[str, Any] | None = None,
    ) -> None:
        log_feature_decision(key, str(value), extra)
        data = self._extra(event_code, extra, None)
        data["decision_key"] = key
        data["decision_value"] = value
        logger.info("%s: %s=%s", event_code, key, value, extra=data)


__all__ = [
    "ErrorContext",
    "ErrorManager",
    "ExternalToolError",
    "HighlightError",
    "PipelineAborted",
    "PipelineError",
    "StageError",
]
