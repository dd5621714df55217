"""Pipeline options for postbuild processing.

This module defines the configuration for one run over a site's output tree.
Defaults reproduce the production pipeline: every HTML and CSS file is
rewritten, HTML is minified, and a failure on one file does not stop the rest.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorPolicy(Enum):
    """What to do with the remaining files when one file fails."""

    CONTINUE = "continue"  # Report the failure, keep processing (default)
    ABORT = "abort"  # Stop scheduling further files and fail the run


@dataclass
class PipelineOptions:
    """Configuration options for a postbuild run."""

    # Pygments style used by the highlighter; bound once per process
    theme: str = "monokai"

    # Number of worker processes (1 = sequential in-process)
    workers: int = 1

    process_html: bool = True
    process_css: bool = True
    minify_html: bool = True

    # Mark absolute links to other hosts with target/rel
    external_links: bool = True
    site_host: str | None = None

    # Wrap local raster images in <picture> when a .webp sibling exists
    webp_pictures: bool = True

    # Regex patterns of selectors that must never be purged
    safelist: list[str] = field(default_factory=list)

    # Prefix of the classes generated by style deduplication
    class_prefix: str = "h"

    error_policy: ErrorPolicy = ErrorPolicy.CONTINUE

    # Activation condition: the run is a no-op unless env_var == production_value
    env_var: str = "JEKYLL_ENV"
    production_value: str = "production"
    force: bool = False

    @classmethod
    def from_cli(
        cls,
        *,
        theme: str = "monokai",
        workers: int = 1,
        html: bool = True,
        css: bool = True,
        minify: bool = True,
        external_links: bool = True,
        site_host: str | None = None,
        webp_pictures: bool = True,
        safelist: list[str] | None = None,
        class_prefix: str = "h",
        on_error: str = "continue",
        env_var: str = "JEKYLL_ENV",
        force: bool = False,
    ) -> PipelineOptions:
        """Build PipelineOptions from CLI argument values.

        Raises:
            ValueError: If any argument has an invalid value
        """
        try:
            error_policy = ErrorPolicy(on_error)
        except ValueError as exc:
            valid_values = [policy.value for policy in ErrorPolicy]
            raise ValueError(
                f"Invalid error policy '{on_error}'. Valid values: {valid_values}"
            ) from exc

        if workers < 1:
            raise ValueError(f"Invalid workers '{workers}'. Must be >= 1")

        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_-]*", class_prefix or ""):
            raise ValueError(f"Invalid class prefix '{class_prefix}'. Must be a CSS identifier")

        patterns = list(safelist or [])
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid safelist pattern '{pattern}': {exc}") from exc

        return cls(
            theme=theme,
            workers=workers,
            process_html=html,
            process_css=css,
            minify_html=minify,
            external_links=external_links,
            site_host=site_host,
            webp_pictures=webp_pictures,
            safelist=patterns,
            class_prefix=class_prefix,
            error_policy=error_policy,
            env_var=env_var,
            force=force,
        )

    def is_active(self, environ: Mapping[str, str] | None = None) -> bool:
        """Return True when the run should rewrite files."""
        if self.force:
            return True
        env = os.environ if environ is None else environ
        return env.get(self.env_var) == self.production_value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization/logging."""
        return {
            "theme": self.theme,
            "workers": self.workers,
            "process_html": self.process_html,
            "process_css": self.process_css,
            "minify_html": self.minify_html,
            "external_links": self.external_links,
            "site_host": self.site_host,
            "webp_pictures": self.webp_pictures,
            "safelist": list(self.safelist),
            "class_prefix": self.class_prefix,
            "error_policy": self.error_policy.value,
            "env_var": self.env_var,
            "production_value": self.production_value,
            "force": self.force,
        }


__all__ = [
    "ErrorPolicy",
    "PipelineOptions",
]
