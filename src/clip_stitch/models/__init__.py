"""Data models for clip-stitch.

Pydantic models for clip instructions, extracted clips, combination groups
and completion records.
"""

from __future__ import annotations

from clip_stitch.models.clip import (
    ClipInstruction,
    CombinationGroup,
    CombinationKey,
    ExtractedClip,
    OutputFormat,
)
from clip_stitch.models.record import CompletionRecord, minutes_with_seconds_in_decimal

__all__ = [
    # Clip models
    "ClipInstruction",
    "CombinationGroup",
    "CombinationKey",
    "ExtractedClip",
    "OutputFormat",
    # Record models
    "CompletionRecord",
    "minutes_with_seconds_in_decimal",
]
