"""The per-page HTML pipeline.

Stage order matters: highlighting produces the inline styles that
deduplication turns into classes, and the generated ``<style>`` block must
exist before the page's styles are reduced against its markup.

    parse -> footnotes -> abbreviations -> links -> pictures -> code_blocks
          -> style_dedup -> markup_cleanup -> span_compress (x2)
          -> reduce_styles -> minify -> reduce_styles
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from bs4 import BeautifulSoup

from postbuild.engine.minify import HtmlMinifyOptions, minify_html
from postbuild.model.document import DocumentState
from postbuild.pipeline.context import PipelineContext
from postbuild.pipeline.error_handling import ErrorContext, ErrorManager, StageError
from postbuild.transform.abbreviations import expand_abbreviations
from postbuild.transform.code_blocks import convert_code_blocks
from postbuild.transform.css_usage import reduce_page_styles
from postbuild.transform.footnotes import normalize_footnotes
from postbuild.transform.links import mark_external_links
from postbuild.transform.markup_cleanup import cleanup_markup
from postbuild.transform.pictures import wrap_webp_pictures
from postbuild.transform.span_compress import DEFAULT_PASSES, compress_spans
from postbuild.transform.style_dedup import deduplicate_inline_styles

logger = logging.getLogger(__name__)

HTML_STAGES = (
    "parse",
    "footnotes",
    "abbreviations",
    "links",
    "pictures",
    "code_blocks",
    "style_dedup",
    "markup_cleanup",
    "span_compress",
    "reduce_styles",
    "minify",
    "reduce_styles_final",
)

MINIFY_OPTIONS = HtmlMinifyOptions(
    collapse_whitespace=True,
    remove_comments=True,
    remove_empty_attributes=True,
    remove_attribute_quotes=True,
)


@contextmanager
def stage(name: str, path: Path | None) -> Iterator[None]:
    """Attribute any failure inside the block to stage ``name``."""
    try:
        yield
    except StageError:
        raise
    except Exception as exc:
        raise StageError(name, path, exc) from exc


def process_html(
    text: str,
    ctx: PipelineContext,
    path: Path | None = None,
    state: DocumentState | None = None,
) -> str:
    """Run the HTML pipeline over one page and return the rewritten markup.

    Pages that no stage modifies are returned unchanged when minification is
    disabled.

    Raises:
        StageError: If any stage fails; nothing is returned for the page
    """
    options = ctx.options
    state = state or DocumentState(path=path)
    errors = ErrorManager(ErrorContext(path=path, source_module=__name__, object_kind="html"))

    with stage("parse", path):
        soup = BeautifulSoup(text, "html.parser")

    changes = 0
    with stage("footnotes", path):
        errors.context.stage = "footnotes"
        state.footnotes = normalize_footnotes(soup, errors)
        changes += len(state.footnotes)

    with stage("abbreviations", path):
        state.abbreviations = expand_abbreviations(soup)
        changes += len(state.abbreviations)

    if options.external_links:
        with stage("links", path):
            changes += mark_external_links(soup, options.site_host)

    if options.webp_pictures and path is not None and ctx.site_root is not None:
        with stage("pictures", path):
            changes += wrap_webp_pictures(soup, path, ctx.site_root)

    with stage("code_blocks", path):
        errors.context.stage = "code_blocks"
        stats = convert_code_blocks(soup, ctx.highlighter, errors)
        state.highlight_failures = stats.failures
        changes += stats.blocks + stats.inline

    with stage("style_dedup", path):
        state.style_rules = deduplicate_inline_styles(
            soup,
            prefix=options.class_prefix,
            default_declarations=ctx.default_declarations(),
            reserved=ctx.reserved_classes,
        )
        changes += len(state.style_rules)

    with stage("markup_cleanup", path):
        changes += cleanup_markup(soup).total

    with stage("span_compress", path):
        changes += compress_spans(soup, passes=DEFAULT_PASSES)

    if not changes and not options.minify_html:
        logger.debug("%s: nothing to rewrite", state.label)
        return text

    with stage("reduce_styles", path):
        html = reduce_page_styles(str(soup), ctx.safelist)

    if options.minify_html:
        with stage("minify", path):
            html = minify_html(html, MINIFY_OPTIONS)
        # Minification can drop the last user of a rule
        with stage("reduce_styles_final", path):
            html = reduce_page_styles(html, ctx.safelist)

    logger.debug(
        "%s: %d footnote(s), %d abbreviation(s), %d style rule(s), %d highlight failure(s)",
        state.label,
        len(state.footnotes),
        len(state.abbreviations),
        len(state.style_rules),
        state.highlight_failures,
    )
    return html


__all__ = ["HTML_STAGES", "MINIFY_OPTIONS", "process_html", "stage"]
