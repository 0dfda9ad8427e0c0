"""Filter-graph synthesis for stitching a group of clips.

Video groups are joined with chained ``xfade`` / ``acrossfade`` stages.
GIF groups go through two passes: ``palettegen`` builds a 256-colour palette
from the inputs, then ``paletteuse`` renders the GIF against it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from clip_stitch.ffmpeg import FFmpegCommand
from clip_stitch.models import CombinationGroup, ExtractedClip, OutputFormat

GIF_FPS = 20
GIF_BOUNDING_BOX = 1080
PALETTE_COLORS = 256

_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class RecombinationPlan:
    """Commands that turn one group's clips into its final artifact.

    Attributes:
        commands: ffmpeg invocations, run in order
        output_path: The final artifact
        artifact_stem: Artifact name without directory or extension
    """

    commands: tuple[FFmpegCommand, ...]
    output_path: Path
    artifact_stem: str


def output_base_digits(output_base: str) -> str:
    """First run of digits in ``output_base``, or ``"unknown"``."""
    match = _DIGITS.search(output_base)
    return match.group(0) if match else "unknown"


def artifact_stem(set_code: str, type_code: str, output_base: str) -> str:
    """Final artifact name, e.g. ``"ABC V007"`` for output base ``"Clip 7"``."""
    return f"{set_code} {type_code}{output_base_digits(output_base).zfill(3)}"


def palette_path(group: CombinationGroup, temp_dir: Path) -> Path:
    set_code, type_code, output_base = group.key
    return temp_dir / f"{set_code}{type_code}{output_base_digits(output_base)}.png"


def crossfade_offsets(durations: list[int], crossfade_length: int) -> list[int]:
    """Cumulative ``xfade`` offsets, one per clip.

    Each clip shortens the running total by the crossfade plus one extra
    second of slack, which keeps the transition off a frame boundary. The
    transition into clip ``i`` uses ``offsets[i - 1]``.
    """
    offsets = []
    cumulative = 0
    for duration in durations:
        cumulative += duration - crossfade_length - 1
        offsets.append(cumulative)
    return offsets


def _input_args(clips: list[ExtractedClip]) -> list[str]:
    args = []
    for clip in clips:
        args.extend(["-i", str(clip.path)])
    return args


def crossfade_filter(durations: list[int], crossfade_length: int) -> str:
    """``-filter_complex`` graph chaining every adjacent pair of inputs.

    Video stream 0 and audio stream 1 of each input are used. Intermediate
    results are labelled ``[vN]`` / ``[aN]``; the last stage of each chain
    is left unlabelled so ffmpeg maps it to the output.
    """
    offsets = crossfade_offsets(durations, crossfade_length)
    last = len(durations) - 1

    video_stages = []
    audio_stages = []
    video_prev = "[0:0]"
    audio_prev = "[0:1]"
    for i in range(1, len(durations)):
        video_next = "" if i == last else f"[v{i}]"
        audio_next = "" if i == last else f"[a{i}]"
        video_stages.append(
            f"{video_prev}[{i}:0]xfade=transition=fade:duration={crossfade_length}"
            f":offset={offsets[i - 1]},format=yuv420p{video_next}"
        )
        audio_stages.append(
            f"{audio_prev}[{i}:1]acrossfade=d={crossfade_length + 1}:c1=tri:c2=tri{audio_next}"
        )
        video_prev = video_next
        audio_prev = audio_next

    return ";".join(video_stages + audio_stages)


def build_video_plan(
    group: CombinationGroup,
    output_path: Path,
    crossfade_length: int,
) -> RecombinationPlan:
    """Encode a video group, crossfading between consecutive clips.

    A single clip is simply re-encoded to the output.
    """
    clips = group.sorted_clips()
    args = ["-y", *_input_args(clips)]
    if len(clips) > 1:
        graph = crossfade_filter([clip.duration_seconds for clip in clips], crossfade_length)
        args.extend(["-filter_complex", graph, "-vsync", "0"])
    args.append(str(output_path))

    command = FFmpegCommand(args=tuple(args), output_path=output_path)
    return RecombinationPlan(commands=(command,), output_path=output_path, artifact_stem=output_path.stem)


def _concat_prefix(count: int) -> str:
    """Filter prefix joining ``count`` video inputs into one stream."""
    if count == 1:
        return "[0:v]"
    labels = "".join(f"[{i}:v]" for i in range(count))
    return f"{labels}concat=n={count}:v=1:a=0,"


def build_palette_plan(
    group: CombinationGroup,
    palette: Path,
    output_path: Path,
) -> RecombinationPlan:
    """Two-pass GIF: generate a palette, then render with it.

    The second pass caps the frame rate and scales the picture to fit a
    1080x1080 box without changing its aspect ratio.
    """
    clips = group.sorted_clips()
    inputs = _input_args(clips)
    prefix = _concat_prefix(len(clips))

    palette_pass = FFmpegCommand(
        args=(
            "-y",
            *inputs,
            "-filter_complex", f"{prefix}palettegen={PALETTE_COLORS}",
            str(palette),
        ),
        output_path=palette,
    )

    # The palette is the input after all the clips.
    palette_index = len(clips)
    render_graph = (
        f"{prefix}fps={GIF_FPS},"
        f"scale={GIF_BOUNDING_BOX}:{GIF_BOUNDING_BOX}:force_original_aspect_ratio=decrease:flags=lanczos[x];"
        f"[x][{palette_index}:v]paletteuse"
    )
    render_pass = FFmpegCommand(
        args=(
            "-y",
            *inputs,
            "-i", str(palette),
            "-filter_complex", render_graph,
            str(output_path),
        ),
        output_path=output_path,
    )

    return RecombinationPlan(
        commands=(palette_pass, render_pass),
        output_path=output_path,
        artifact_stem=output_path.stem,
    )


def synthesize(
    group: CombinationGroup,
    temp_dir: Path,
    finished_dir: Path,
    crossfade_length: int,
) -> RecombinationPlan:
    """Pick and build the plan matching the group's output format."""
    if not group.clips:
        raise ValueError(f"Group {group.key} has no clips")

    set_code, type_code, output_base = group.key
    stem = artifact_stem(set_code, type_code, output_base)
    output_path = finished_dir / f"{stem}.{group.output_format.extension}"

    if group.output_format is OutputFormat.GIF:
        return build_palette_plan(group, palette_path(group, temp_dir), output_path)
    return build_video_plan(group, output_path, crossfade_length)
