"""Per-process pipeline context.

A PipelineContext bundles the options of a run with the resources that are
expensive to build and safe to share between files: the loaded Highlighter
and the compiled safelist. It is created once by the orchestrator (and once
in each worker process) before any file is processed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from postbuild.engine.highlighter import Highlighter
from postbuild.model.pipeline_options import PipelineOptions
from postbuild.transform.css_usage import compile_safelist

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    options: PipelineOptions
    highlighter: Highlighter
    site_root: Path | None = None
    safelist: tuple[re.Pattern[str], ...] = field(default_factory=tuple)
    reserved_classes: frozenset[str] = frozenset()

    @classmethod
    def create(
        cls,
        options: PipelineOptions,
        site_root: Path | None = None,
        reserved_classes: Iterable[str] = (),
    ) -> PipelineContext:
        """Build the context and load the highlighter eagerly.

        ``reserved_classes`` are the class names used by the site's
        stylesheets; generated class names never take one of them.

        Raises:
            ValueError: If the configured theme cannot be loaded
        """
        highlighter = Highlighter(options.theme)
        highlighter.load()
        logger.debug("Pipeline context ready (theme=%s, root=%s)", options.theme, site_root)
        return cls(
            options=options,
            highlighter=highlighter,
            site_root=site_root,
            safelist=compile_safelist(options.safelist),
            reserved_classes=frozenset(reserved_classes),
        )

    def default_declarations(self) -> list[str]:
        """Declarations made redundant by the page's own base styling."""
        colors = self.highlighter.colors
        declarations: list[str] = []
        if colors.background:
            declarations.append(f"background-color: {colors.background}")
        if colors.foreground:
            declarations.append(f"color: {colors.foreground}")
        return declarations


__all__ = ["PipelineContext"]
