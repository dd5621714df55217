from pathlib import Path

import pytest
from typer.testing import CliRunner

from postbuild import __version__
from postbuild.cli import app


def test_cli_shows_help() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Post-process" in result.stdout


def test_cli_version_command() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == f"postbuild version {__version__}"


def test_cli_version_flag() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_run_outside_production_is_a_no_op(site: Path, monkeypatch: pytest.MonkeyPatch, isolate_logging) -> None:
    monkeypatch.delenv("JEKYLL_ENV", raising=False)
    before = (site / "index.html").read_bytes()

    runner = CliRunner()
    result = runner.invoke(app, ["run", str(site)])

    assert result.exit_code == 0
    assert "nothing to do" in result.stdout
    assert (site / "index.html").read_bytes() == before


def test_run_in_production(site: Path, monkeypatch: pytest.MonkeyPatch, isolate_logging) -> None:
    monkeypatch.setenv("JEKYLL_ENV", "production")

    runner = CliRunner()
    result = runner.invoke(app, ["run", str(site), "--no-progress", "--no-webp"])

    assert result.exit_code == 0, result.output
    assert "Written: 3" in result.stdout
    assert (site / "assets" / "main.css").read_text(encoding="utf-8") == "body{margin:0}.footnotes{font-size:80%}"


def test_run_with_custom_env_var(site: Path, monkeypatch: pytest.MonkeyPatch, isolate_logging) -> None:
    monkeypatch.setenv("SITE_ENV", "production")
    monkeypatch.delenv("JEKYLL_ENV", raising=False)

    runner = CliRunner()
    result = runner.invoke(app, ["run", str(site), "--env-var", "SITE_ENV", "--no-progress", "--no-minify"])

    assert result.exit_code == 0, result.output
    assert "Written: 3" in result.stdout


def test_run_invalid_error_policy(site: Path, isolate_logging) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["run", str(site), "--force", "--on-error", "explode"])

    assert result.exit_code == 1
    assert "Invalid error policy" in result.output


def test_run_invalid_safelist_pattern(site: Path, isolate_logging) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["run", str(site), "--force", "--safelist", "("])

    assert result.exit_code == 1
    assert "Invalid safelist pattern" in result.output


def test_run_missing_site_dir(tmp_path: Path, isolate_logging) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["run", str(tmp_path / "nope"), "--force"])

    assert result.exit_code != 0


def test_run_unknown_theme_fails(site: Path, isolate_logging) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["run", str(site), "--force", "--no-progress", "--theme", "no-such-theme"])

    assert result.exit_code == 1
    assert "Unknown highlighting theme" in result.output


def test_doctor_reports_engines() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["doctor"])

    assert result.exit_code == 0
    assert "✅ Pygments installed" in result.stdout
    assert "✅ Theme 'monokai' loads" in result.stdout


def test_doctor_unknown_theme() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["doctor", "--theme", "no-such-theme"])

    assert result.exit_code == 1
    assert "❌ Theme 'no-such-theme' failed to load" in result.stdout
