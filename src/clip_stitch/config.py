"""Configuration loading for clip-stitch.

Settings come from environment variables; the CLI loads a ``.env`` file
into the environment first. A missing Notion secret or database id is the
only condition that stops a run before any work starts.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from clip_stitch.errors import ConfigurationError
from clip_stitch.ffmpeg_binary import FFmpegConfig

DEFAULT_WORKING_DIR = Path("/working")
DEFAULT_CROSSFADE_LENGTH = 1

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class PipelineSettings(BaseModel):
    """Everything a pipeline run needs to know."""

    notion_secret: str = Field(min_length=1)
    input_database_id: str = Field(min_length=1)
    output_database_id: str = Field(min_length=1)

    # When false, plans are built and logged but ffmpeg never runs and no
    # record is written.
    use_ffmpeg: bool = False
    # Legacy display mode: 125s is stored as 2.05.
    duration_as_minutes_with_seconds_in_decimal: bool = False
    crossfade_length: int = DEFAULT_CROSSFADE_LENGTH

    working_dir: Path = DEFAULT_WORKING_DIR

    extraction_concurrency: int = Field(default=1, ge=1)
    recombination_concurrency: int = Field(default=1, ge=1)
    completion_concurrency: int = Field(default=10, ge=1)

    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)

    @property
    def sources_dir(self) -> Path:
        return self.working_dir / "Sources"

    @property
    def temp_dir(self) -> Path:
        return self.working_dir / "Temp"

    @property
    def finished_dir(self) -> Path:
        return self.working_dir / "Finished"


def parse_flag(value: str | None) -> bool:
    """Only the literal ``true`` turns a flag on."""
    return value == "true"


def parse_leading_int(value: str | None, default: int) -> int:
    """Read the integer at the start of ``value``, like ``"3s"`` -> 3.

    Returns ``default`` when ``value`` is missing or does not start with one.
    """
    if value is None:
        return default
    match = _LEADING_INT.match(value)
    if match is None:
        return default
    return int(match.group(1))


def ffmpeg_config_from_env(env: Mapping[str, str] | None = None) -> FFmpegConfig:
    """Executable overrides from ``FFMPEG_PATH`` and ``FFPROBE_PATH``."""
    env = os.environ if env is None else env
    return FFmpegConfig(
        custom_ffmpeg_path=env.get("FFMPEG_PATH") or None,
        custom_ffprobe_path=env.get("FFPROBE_PATH") or None,
    )


def load_settings(env: Mapping[str, str] | None = None) -> PipelineSettings:
    """Build settings from environment variables.

    Args:
        env: Variables to read; defaults to ``os.environ``

    Raises:
        ConfigurationError: Secret or database ids missing, or a bound < 1.
    """
    env = os.environ if env is None else env

    notion_secret = env.get("NOTION_SECRET", "")
    if not notion_secret:
        raise ConfigurationError(
            "No notion secret provided, please set the NOTION_SECRET environment variable."
        )

    input_database_id = env.get("INPUT_DATABASE", "")
    output_database_id = env.get("OUTPUT_DATABASE", "")
    if not input_database_id or not output_database_id:
        raise ConfigurationError(
            "Notion databases missing, please set both the INPUT_DATABASE and "
            "OUTPUT_DATABASE environment variables."
        )

    try:
        return PipelineSettings(
            notion_secret=notion_secret,
            input_database_id=input_database_id,
            output_database_id=output_database_id,
            use_ffmpeg=parse_flag(env.get("USE_FFMPEG")),
            duration_as_minutes_with_seconds_in_decimal=parse_flag(
                env.get("DURATION_AS_MINUTES_WITH_SECONDS_IN_DECIMAL")
            ),
            crossfade_length=parse_leading_int(env.get("CROSSFADE_LENGTH"), DEFAULT_CROSSFADE_LENGTH),
            working_dir=Path(env.get("WORKING_DIR") or DEFAULT_WORKING_DIR),
            extraction_concurrency=parse_leading_int(env.get("EXTRACTION_CONCURRENCY"), 1),
            recombination_concurrency=parse_leading_int(env.get("RECOMBINATION_CONCURRENCY"), 1),
            completion_concurrency=parse_leading_int(env.get("COMPLETION_CONCURRENCY"), 10),
            ffmpeg=ffmpeg_config_from_env(env),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
