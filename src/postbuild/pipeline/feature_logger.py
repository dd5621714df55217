"""Centralized feature decision logging for the postbuild pipeline.

This module logs configuration and feature decisions for debugging. It does
not overlap with ProgressReporter, which is only concerned with user-facing
progress.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from postbuild.model.pipeline_options import PipelineOptions

logger = logging.getLogger(__name__)


def _toggle(flag: bool) -> str:
    return "enabled" if flag else "disabled"


def log_pipeline_configuration(options: PipelineOptions) -> None:
    """Log the run configuration once, before any file is touched."""
    logger.info("Pipeline configuration:")
    logger.info("  Theme: %s", options.theme)
    logger.info("  Workers: %d", options.workers)
    logger.info("  HTML pass: %s", _toggle(options.process_html))
    logger.info("  CSS pass: %s", _toggle(options.process_css))
    logger.info("  HTML minification: %s", _toggle(options.minify_html))
    logger.info("  External links: %s", _toggle(options.external_links))
    if options.external_links and options.site_host:
        logger.info("  Site host: %s", options.site_host)
    logger.info("  WebP pictures: %s", _toggle(options.webp_pictures))
    if options.safelist:
        logger.info("  Safelist: %s", ", ".join(options.safelist))
    logger.info("  Error policy: %s", options.error_policy.value)


def log_engine_availability(engine: str, version: str | None, reason: str | None = None) -> None:
    """Log whether an engine library can be used.

    Args:
        engine: Distribution or component name (e.g. "Pygments", "Theme 'monokai'")
        version: Installed version, None when unavailable
        reason: Why the engine is unavailable, if known
    """
    if version is not None:
        logger.info("%s: available (%s)", engine, version)
    elif reason:
        logger.warning("%s: unavailable - %s", engine, reason)
    else:
        logger.warning("%s: unavailable", engine)


def log_feature_decision(feature: str, decision: str, context: dict[str, Any] | None = None) -> None:
    """Log a feature processing decision.

    Args:
        feature: Name of the feature making the decision
        decision: The decision made (e.g., "enabled", "skipped", "fallback")
        context: Optional context information
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        logger.info("%s: %s (%s)", feature, decision, context_str)
    else:
        logger.info("%s: %s", feature, decision)


def log_error_policy(feature: str, error_type: str, action: str, details: str | None = None) -> None:
    """Log what the pipeline did about a failure.

    ``action`` is one of "fallback" (highlighting), "continue" or "abort"
    (file failures).
    """
    if details:
        logger.warning("%s error policy: %s -> %s (%s)", feature, error_type, action, details)
    else:
        logger.warning("%s error policy: %s -> %s", feature, error_type, action)


__all__ = [
    "log_engine_availability",
    "log_error_policy",
    "log_feature_decision",
    "log_pipeline_configuration",
]
