"""Clip models for clip-stitch.

A ClipInstruction is one row of the input database: a span of a source video
destined for a numbered output. Extraction turns it into an ExtractedClip,
and clips sharing a CombinationKey are stitched into one artifact.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from clip_stitch import timecode
from clip_stitch.timecode import Timecode


class OutputFormat(str, Enum):
    """Final artifact format, valued by its name in the record store."""

    VIDEO = "Video"
    GIF = "GIF"

    @property
    def type_code(self) -> str:
        """Single-letter code used in combination keys and file names."""
        return "V" if self is OutputFormat.VIDEO else "G"

    @property
    def extension(self) -> str:
        """File extension of the final artifact."""
        return "mp4" if self is OutputFormat.VIDEO else "gif"

    @classmethod
    def from_store_name(cls, name: str) -> "OutputFormat":
        """Map a select option such as ``"Video"`` or ``"Gif"`` to a format.

        Raises:
            ValueError: Unknown format name.
        """
        for member in cls:
            if member.value.lower() == name.strip().lower():
                return member
        raise ValueError(f"Unknown output format: {name!r}")


class CombinationKey(NamedTuple):
    """Identifies the final artifact a clip belongs to."""

    set_code: str
    type_code: str
    output_base: str

    def __str__(self) -> str:
        return f"{self.set_code}_{self.type_code}_{self.output_base}"


class ClipInstruction(BaseModel):
    """One editing instruction read from the input database."""

    model_config = ConfigDict(frozen=True)

    source_name: str  # File name inside the sources directory
    in_point: Timecode
    out_point: Timecode
    output_base: str
    order: int  # Position within the final artifact
    output_format: OutputFormat
    set_code: str
    set_reference: str  # Opaque id of the set, related from the output row
    record_id: str  # Input row to tick as processed

    @property
    def type_code(self) -> str:
        return self.output_format.type_code

    @property
    def combination_key(self) -> CombinationKey:
        return CombinationKey(self.set_code, self.type_code, self.output_base)

    @property
    def duration(self) -> Timecode:
        """Span between in- and out-point.

        Raises:
            InvalidTimeRange: The out-point precedes the in-point.
        """
        return timecode.subtract(self.out_point, self.in_point)

    @property
    def duration_seconds(self) -> int:
        return timecode.to_seconds(self.duration)

    @property
    def intermediate_name(self) -> str:
        """Deterministic file name of the extracted clip.

        Re-running a batch recomputes the same name, which is how already
        extracted clips are recognised and skipped.
        """
        source = Path(self.source_name)
        return (
            f"{source.stem}-{self.output_format.value}-{self.output_base}"
            f"-part{self.order}{source.suffix}"
        )


class ExtractedClip(BaseModel):
    """An intermediate clip on disk, ready to be stitched."""

    model_config = ConfigDict(frozen=True)

    path: Path
    duration_seconds: int = Field(ge=0)
    order: int
    instruction: ClipInstruction


@dataclass
class CombinationGroup:
    """All extracted clips that make up one final artifact.

    Clips are appended in completion order; use ``sorted_clips`` before
    building anything from them.
    """

    key: CombinationKey
    clips: list[ExtractedClip] = field(default_factory=list)

    @property
    def output_format(self) -> OutputFormat:
        return self.clips[0].instruction.output_format

    @property
    def set_reference(self) -> str:
        return self.clips[0].instruction.set_reference

    @property
    def record_ids(self) -> list[str]:
        return [clip.instruction.record_id for clip in self.sorted_clips()]

    def add(self, clip: ExtractedClip) -> None:
        """Register a clip; it must share this group's key."""
        if clip.instruction.combination_key != self.key:
            raise ValueError(
                f"Clip for {clip.instruction.combination_key} added to group {self.key}"
            )
        self.clips.append(clip)

    def sorted_clips(self) -> list[ExtractedClip]:
        """Clips in ascending ``order``; ties keep arrival order."""
        return sorted(self.clips, key=lambda clip: clip.order)
