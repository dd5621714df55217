"""Environment probe for the engines the pipeline drives.

Used by ``postbuild doctor``: reports installed versions of the highlighting,
parsing and minification libraries and whether the configured theme loads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from importlib import metadata

from postbuild.pipeline.feature_logger import log_engine_availability

ENGINE_DISTRIBUTIONS = ("Pygments", "beautifulsoup4", "soupsieve", "rcssmin", "htmlmin2")


@dataclass
class EngineReport:
    versions: dict[str, str | None] = field(default_factory=dict)
    theme: str = "monokai"
    theme_loads: bool = False
    theme_error: str | None = None

    @property
    def missing(self) -> list[str]:
        return [name for name, version in self.versions.items() if version is None]


def _version(distribution: str) -> str | None:
    try:
        return metadata.version(distribution)
    except metadata.PackageNotFoundError:
        return None


def probe_engines(theme: str = "monokai") -> EngineReport:
    report = EngineReport(theme=theme)
    for name in ENGINE_DISTRIBUTIONS:
        version = _version(name)
        report.versions[name] = version
        log_engine_availability(name, version, None if version else "not installed")

    from postbuild.engine.highlighter import Highlighter

    try:
        Highlighter(theme).load()
        report.theme_loads = True
    except (ValueError, ImportError) as exc:
        report.theme_error = str(exc)
    log_engine_availability(f"Theme '{theme}'", "loaded" if report.theme_loads else None, report.theme_error)
    return report


def report_is_ok(report: EngineReport) -> bool:
    return not report.missing and report.theme_loads


def format_report_lines(report: EngineReport) -> list[str]:
    lines: list[str] = []
    for name, version in report.versions.items():
        if version is None:
            lines.append(f"❌ {name} not installed")
        else:
            lines.append(f"✅ {name} installed (version {version})")
    if report.theme_loads:
        lines.append(f"✅ Theme '{report.theme}' loads")
    else:
        lines.append(f"❌ Theme '{report.theme}' failed to load: {report.theme_error}")
    return lines


__all__ = [
    "EngineReport",
    "format_report_lines",
    "probe_engines",
    "report_is_ok",
]
