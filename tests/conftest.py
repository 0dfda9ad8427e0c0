"""Shared test fixtures for clip-stitch tests."""

import pytest

from clip_stitch.config import PipelineSettings


@pytest.fixture
def settings(tmp_path):
    """Live-mode settings rooted in a temporary working directory."""
    (tmp_path / "Sources").mkdir()
    return PipelineSettings(
        notion_secret="secret_test",
        input_database_id="input-db",
        output_database_id="output-db",
        use_ffmpeg=True,
        working_dir=tmp_path,
    )


@pytest.fixture
def dry_settings(settings):
    """Same settings with ffmpeg switched off."""
    return settings.model_copy(update={"use_ffmpeg": False})
