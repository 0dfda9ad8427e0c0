"""Tests for the CLI."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from clip_stitch import __version__
from clip_stitch.cli import app
from clip_stitch.errors import RecordSyncFailed, SynthesisFailed
from clip_stitch.logging import LogConfig, configure_logging
from clip_stitch.models import CompletionRecord, OutputFormat
from clip_stitch.pipeline import PipelineReport, UnitFailure

runner = CliRunner()


@pytest.fixture(autouse=True)
def notion_env(monkeypatch):
    monkeypatch.setenv("NOTION_SECRET", "secret_abc")
    monkeypatch.setenv("INPUT_DATABASE", "in-db")
    monkeypatch.setenv("OUTPUT_DATABASE", "out-db")
    for name in ("USE_FFMPEG", "WORKING_DIR", "CROSSFADE_LENGTH", "FFMPEG_PATH", "FFPROBE_PATH"):
        monkeypatch.delenv(name, raising=False)
    yield
    # The CLI points the console handler at the runner's stream.
    configure_logging(LogConfig())


def _report(failures=()):
    report = PipelineReport(
        instructions_loaded=2,
        extraction_counts={"extracted": 2, "skipped": 0, "planned": 0},
        groups_total=1,
        instructions_marked=2,
        completed_at="2024-01-01T00:00:00",
    )
    report.records.append(CompletionRecord(
        file_name="ABC V007",
        set_reference="set-1",
        output_format=OutputFormat.VIDEO,
        duration=42.5,
    ))
    report.failures.extend(failures)
    return report


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestRunCommand:
    """Tests for the run command."""

    def test_success(self):
        """A clean run prints its artifacts and exits 0."""
        with patch("clip_stitch.cli._run_pipeline", AsyncMock(return_value=_report())) as run_mock:
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 0
        assert "ABC V007" in result.output
        settings = run_mock.call_args.args[0]
        assert settings.input_database_id == "in-db"
        assert settings.use_ffmpeg is False

    def test_use_ffmpeg_from_env(self, monkeypatch):
        monkeypatch.setenv("USE_FFMPEG", "true")

        with patch("clip_stitch.cli._run_pipeline", AsyncMock(return_value=_report())) as run_mock:
            runner.invoke(app, ["run"])

        assert run_mock.call_args.args[0].use_ffmpeg is True

    def test_dry_run_overrides_env(self, monkeypatch):
        monkeypatch.setenv("USE_FFMPEG", "true")

        with patch("clip_stitch.cli._run_pipeline", AsyncMock(return_value=_report())) as run_mock:
            runner.invoke(app, ["run", "--dry-run"])

        assert run_mock.call_args.args[0].use_ffmpeg is False

    def test_missing_secret(self, monkeypatch):
        """Configuration errors stop the run before any work."""
        monkeypatch.delenv("NOTION_SECRET")

        with patch("clip_stitch.cli._run_pipeline", AsyncMock()) as run_mock:
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert "NOTION_SECRET" in result.output
        run_mock.assert_not_called()

    def test_failures_exit_nonzero(self):
        failure = UnitFailure(
            stage="recombination",
            subject="ABC_V_Clip 2",
            error=SynthesisFailed("FFmpeg exited with code 1"),
        )

        with patch("clip_stitch.cli._run_pipeline", AsyncMock(return_value=_report([failure]))):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert "Failures: 1" in result.output
        assert "ABC_V_Clip" in result.output

    def test_query_failure(self):
        """A failed initial query is reported and exits 1."""
        error = RecordSyncFailed("Querying input database failed")

        with patch("clip_stitch.cli._run_pipeline", AsyncMock(side_effect=error)):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert "Querying input database failed" in result.output

    def test_report_written(self, tmp_path):
        report_path = tmp_path / "reports" / "run.json"

        with patch("clip_stitch.cli._run_pipeline", AsyncMock(return_value=_report())):
            result = runner.invoke(app, ["run", "--report", str(report_path)])

        assert result.exit_code == 0
        data = json.loads(report_path.read_text())
        assert data["records"][0]["file_name"] == "ABC V007"
        assert data["instructions_marked"] == 2
        assert data["failures"] == []


class TestCheckDeps:
    """Tests for the check-deps command."""

    def _deps(self, ffprobe_available=True):
        return {
            "ffmpeg": {"available": True, "path": "/usr/bin/ffmpeg", "version": "6.0", "source": "system"},
            "ffprobe": {
                "available": ffprobe_available,
                "path": "/usr/bin/ffprobe" if ffprobe_available else "",
                "version": "6.0" if ffprobe_available else "",
                "source": "system" if ffprobe_available else "not_found",
            },
            "imageio_ffmpeg": {"available": True, "version": "0.5.1"},
            "platform": {"system": "Linux", "machine": "x86_64", "python": "3.11.0"},
        }

    def test_all_available(self):
        with patch("clip_stitch.cli.get_dependency_report", return_value=self._deps()):
            result = runner.invoke(app, ["check-deps"])

        assert result.exit_code == 0
        assert "ffprobe" in result.output

    def test_uses_configured_paths(self, monkeypatch):
        """Executable overrides apply to check-deps as they do to run."""
        monkeypatch.setenv("FFMPEG_PATH", "/opt/ffmpeg/bin/ffmpeg")
        monkeypatch.setenv("FFPROBE_PATH", "/opt/ffmpeg/bin/ffprobe")

        with patch("clip_stitch.cli.get_dependency_report", return_value=self._deps()) as report_mock:
            runner.invoke(app, ["check-deps"])

        config = report_mock.call_args.args[0]
        assert config.custom_ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"
        assert config.custom_ffprobe_path == "/opt/ffmpeg/bin/ffprobe"

    def test_missing_ffprobe(self):
        with patch("clip_stitch.cli.get_dependency_report", return_value=self._deps(False)):
            result = runner.invoke(app, ["check-deps"])

        assert result.exit_code == 1
