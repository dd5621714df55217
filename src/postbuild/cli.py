"""CLI interface for postbuild."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler

from postbuild import __version__
from postbuild.model.pipeline_options import PipelineOptions
from postbuild.pipeline.error_handling import PipelineAborted
from postbuild.pipeline.orchestrator import RunReport, run_site
from postbuild.ui.progress import ProgressReporter

app = typer.Typer(
    name="postbuild",
    help="Post-process a generated static site: footnotes, abbreviations, highlighting, CSS purging.",
    no_args_is_help=True,
)


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose >= 2, show_path=verbose >= 2)],
        force=True,
    )


def _print_report(report: RunReport) -> None:
    typer.echo(f"\n✅ Written: {report.written}")
    typer.echo(f"⏸️  Unchanged: {report.unchanged}")
    if report.kept:
        typer.echo(f"↩️  Kept original (output larger): {report.kept}")
    typer.echo(f"📉 Bytes saved: {report.bytes_saved}")
    for failure in report.failures:
        typer.echo(f"❌ {failure.path} [{failure.stage}]: {failure.error}", err=True)


@app.command()
def run(
    site_dir: Annotated[
        Path,
        typer.Argument(
            help="Directory holding the generated site (e.g. _site)",
            exists=True,
            file_okay=False,
            dir_okay=True,
            readable=True,
        ),
    ],
    theme: Annotated[
        str,
        typer.Option("--theme", help="Pygments style used for code highlighting (default: monokai)"),
    ] = "monokai",
    workers: Annotated[
        int,
        typer.Option("--workers", "-j", help="Worker processes (default: 1, sequential)"),
    ] = 1,
    html: Annotated[
        bool,
        typer.Option("--html/--no-html", help="Run the HTML pass (default: enabled)"),
    ] = True,
    css: Annotated[
        bool,
        typer.Option("--css/--no-css", help="Run the site-wide CSS pass (default: enabled)"),
    ] = True,
    minify: Annotated[
        bool,
        typer.Option("--minify/--no-minify", help="Minify HTML output (default: enabled)"),
    ] = True,
    external_links: Annotated[
        bool,
        typer.Option(
            "--external-links/--no-external-links",
            help="Open links to other hosts in a new tab (default: enabled)",
        ),
    ] = True,
    site_host: Annotated[
        str | None,
        typer.Option("--site-host", help="Host name of the site; links to it are not external"),
    ] = None,
    webp: Annotated[
        bool,
        typer.Option("--webp/--no-webp", help="Wrap images with a .webp sibling in <picture> (default: enabled)"),
    ] = True,
    safelist: Annotated[
        list[str] | None,
        typer.Option("--safelist", help="Regex of selectors never purged (repeatable)"),
    ] = None,
    class_prefix: Annotated[
        str,
        typer.Option("--class-prefix", help="Prefix of generated style classes (default: h)"),
    ] = "h",
    on_error: Annotated[
        str,
        typer.Option("--on-error", help="Failure policy: 'continue' (default) or 'abort'"),
    ] = "continue",
    env_var: Annotated[
        str,
        typer.Option("--env-var", help="Environment variable that marks a production build"),
    ] = "JEKYLL_ENV",
    force: Annotated[
        bool,
        typer.Option("--force", help="Run even when the build is not a production build"),
    ] = False,
    progress: Annotated[
        bool,
        typer.Option("--progress/--no-progress", help="Show progress bars (default: enabled)"),
    ] = True,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)"),
    ] = 0,
) -> None:
    """Rewrite every HTML and CSS file of a generated site in place."""
    _configure_logging(verbose)

    try:
        options = PipelineOptions.from_cli(
            theme=theme,
            workers=workers,
            html=html,
            css=css,
            minify=minify,
            external_links=external_links,
            site_host=site_host,
            webp_pictures=webp,
            safelist=safelist,
            class_prefix=class_prefix,
            on_error=on_error,
            env_var=env_var,
            force=force,
        )
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc

    if not options.is_active():
        typer.echo(
            f"⏭️  {options.env_var} is not '{options.production_value}'; nothing to do (use --force to run anyway)"
        )
        return

    typer.echo(f"🛠️  Post-processing site: {site_dir}")
    typer.echo(f"🎨 Theme: {options.theme}")
    typer.echo(f"⚙️  Workers: {options.workers}")

    try:
        if progress:
            with ProgressReporter() as reporter:
                report = run_site(site_dir, options, progress=reporter.emit)
        else:
            report = run_site(site_dir, options)
    except PipelineAborted as exc:
        typer.echo(f"\n❌ {exc}", err=True)
        if isinstance(exc.report, RunReport):
            _print_report(exc.report)
        raise typer.Exit(1) from exc
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc

    _print_report(report)
    if report.failures:
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"postbuild version {__version__}")


def version_callback(value: bool) -> None:
    """Version callback for --version flag."""
    if value:
        typer.echo(f"postbuild version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """
    postbuild - Post-process the HTML and CSS output of a static site generator.

    Runs after the site has been generated and rewrites the output in place:
    - Normalizes footnotes into a single linked list
    - Expands *[TERM]: definition abbreviations into <abbr> elements
    - Highlights code blocks and turns inline styles into shared classes
    - Removes unused CSS per page and across the site, then minifies

    Nothing is rewritten unless JEKYLL_ENV=production (or --force is given).

    For detailed usage, run: postbuild run --help
    """
    pass


@app.command()
def doctor(
    theme: Annotated[
        str,
        typer.Option("--theme", help="Pygments style to check (default: monokai)"),
    ] = "monokai",
) -> None:
    """Check that the highlighting, parsing and minification engines are usable.

    Reports installed versions and whether the highlighting theme loads.
    """
    from postbuild.engine_env import format_report_lines, probe_engines, report_is_ok

    report = probe_engines(theme)
    for line in format_report_lines(report):
        typer.echo(line)

    if not report_is_ok(report):
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover - executed only via `python -m`
    app()
