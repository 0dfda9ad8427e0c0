"""Completion record model.

Describes one finished artifact as written to the output database.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict

from clip_stitch.models.clip import OutputFormat


class CompletionRecord(BaseModel):
    """Row created in the output database for a finished artifact."""

    model_config = ConfigDict(frozen=True)

    file_name: str  # Artifact name without directory or extension
    set_reference: str
    output_format: OutputFormat
    duration: float


def minutes_with_seconds_in_decimal(seconds: float) -> float:
    """Reformat a duration as ``minutes.SS`` for the legacy display mode.

    The whole leftover seconds are divided by 100 and added to the minutes,
    so 125 seconds becomes ``2.05``. The result is not a fraction of a
    minute; it only reads like ``m:ss``.
    """
    minutes = math.floor(seconds / 60)
    leftover = math.floor(seconds - minutes * 60)
    return round(minutes + leftover / 100, 2)
