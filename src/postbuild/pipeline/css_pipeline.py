"""The site-wide CSS pipeline: minify -> purge unused selectors -> minify."""

from __future__ import annotations

import logging
from pathlib import Path

from postbuild.engine.minify import minify_css
from postbuild.pipeline.context import PipelineContext
from postbuild.pipeline.html_pipeline import stage
from postbuild.transform.css_usage import UsageIndex, reduce_css

logger = logging.getLogger(__name__)

CSS_STAGES = ("minify", "purge", "minify_final")


def process_css(text: str, ctx: PipelineContext, usage: UsageIndex, path: Path | None = None) -> str:
    """Reduce one stylesheet against the site's HTML corpus.

    Raises:
        StageError: If any stage fails
    """
    if not text.strip():
        return text
    with stage("minify", path):
        css = minify_css(text)
    with stage("purge", path):
        css = reduce_css(css, usage, ctx.safelist)
    with stage("minify_final", path):
        css = minify_css(css)
    logger.debug("%s: %d -> %d bytes", path or "<memory>", len(text), len(css))
    return css


__all__ = ["CSS_STAGES", "process_css"]
