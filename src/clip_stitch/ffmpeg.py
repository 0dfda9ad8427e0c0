"""Async FFmpeg wrapper for clip extraction and recombination.

Commands are assembled as ``FFmpegCommand`` argument lists and only turned
into a process at ``FFmpegRunner.run``; nothing is ever passed through a
shell, so file names need no quoting.
"""

from __future__ import annotations

import asyncio
import shlex
from dataclasses import dataclass
from pathlib import Path

from clip_stitch.errors import FFmpegNotFoundError, ProbeFailed, TranscodeError
from clip_stitch.ffmpeg_binary import FFmpegConfig, get_ffmpeg_path, get_ffprobe_path
from clip_stitch.logging import get_logger
from clip_stitch.timecode import Timecode, format_timecode

logger = get_logger(__name__)


@dataclass(frozen=True)
class FFmpegCommand:
    """An ffmpeg invocation, minus the executable.

    Attributes:
        args: Arguments in the order ffmpeg receives them
        output_path: File the command writes
    """

    args: tuple[str, ...]
    output_path: Path

    def to_argv(self, executable: str) -> list[str]:
        return [executable, *self.args]

    def __str__(self) -> str:
        return shlex.join(["ffmpeg", *self.args])


def build_extraction_command(
    source: Path,
    output: Path,
    start: Timecode,
    duration: Timecode,
) -> FFmpegCommand:
    """Cut ``duration`` from ``source`` starting at ``start``.

    ``-ss`` goes before ``-i`` so ffmpeg seeks the input instead of decoding
    everything up to the in-point.
    """
    args = (
        "-y",
        "-ss", format_timecode(start),
        "-i", str(source),
        "-t", format_timecode(duration),
        str(output),
    )
    return FFmpegCommand(args=args, output_path=output)


def parse_probe_duration(output: str) -> float:
    """Read the ``duration=`` line of ``ffprobe -show_format`` output.

    Raises:
        ProbeFailed: No duration line, or its value is not a number.
    """
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("duration="):
            value = line[len("duration="):]
            try:
                return float(value)
            except ValueError as e:
                raise ProbeFailed(f"Unparseable duration {value!r} in ffprobe output") from e
    raise ProbeFailed("No duration line in ffprobe output")


class FFmpegRunner:
    """Runs ffmpeg / ffprobe as asyncio subprocesses.

    Executables are resolved lazily so a dry run never needs ffmpeg
    installed.
    """

    def __init__(self, config: FFmpegConfig | None = None) -> None:
        self._config = config or FFmpegConfig()
        self._ffmpeg_path: str | None = None
        self._ffprobe_path: str | None = None

    @property
    def ffmpeg_path(self) -> str:
        if self._ffmpeg_path is None:
            self._ffmpeg_path = get_ffmpeg_path(self._config)
            if self._ffmpeg_path is None:
                raise FFmpegNotFoundError(
                    "FFmpeg not found. Please install imageio-ffmpeg or add FFmpeg to PATH."
                )
        return self._ffmpeg_path

    @property
    def ffprobe_path(self) -> str:
        if self._ffprobe_path is None:
            self._ffprobe_path = get_ffprobe_path(self._config)
            if self._ffprobe_path is None:
                raise FFmpegNotFoundError(
                    "FFprobe not found. Please install FFprobe to enable duration probing."
                )
        return self._ffprobe_path

    async def _exec(self, argv: list[str]) -> tuple[int, str, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FFmpegNotFoundError(f"Executable not found: {argv[0]}") from e
        except OSError as e:
            raise TranscodeError(f"Failed to start {argv[0]}: {e}") from e

        stdout, stderr = await proc.communicate()
        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def run(self, command: FFmpegCommand) -> None:
        """Run an ffmpeg command to completion.

        Raises:
            TranscodeError: ffmpeg exited non-zero.
            FFmpegNotFoundError: ffmpeg could not be located.
        """
        logger.debug(f"Running {command}", extra={"output": str(command.output_path)})
        command.output_path.parent.mkdir(parents=True, exist_ok=True)
        argv = command.to_argv(self.ffmpeg_path)

        # An output file on disk always means a finished run; partial files
        # are removed so a rerun does not skip them.
        try:
            returncode, stdout, stderr = await self._exec(argv)
        except BaseException:
            command.output_path.unlink(missing_ok=True)
            raise
        if returncode != 0:
            command.output_path.unlink(missing_ok=True)
            # ffmpeg reports on stderr; the tail holds the actual error.
            detail = (stderr or stdout or "Unknown error").strip().splitlines()[-5:]
            raise TranscodeError(
                f"FFmpeg exited with code {returncode}: {' / '.join(detail)}",
                context={"output": str(command.output_path)},
            )

    async def probe_duration(self, path: Path) -> float:
        """Return the duration of ``path`` in seconds as reported by ffprobe.

        Raises:
            ProbeFailed: ffprobe failed or printed no usable duration.
        """
        argv = [self.ffprobe_path, "-i", str(path), "-show_format"]
        returncode, stdout, stderr = await self._exec(argv)
        if returncode != 0:
            raise ProbeFailed(
                f"FFprobe exited with code {returncode}",
                context={"path": str(path), "stderr": stderr.strip()[-200:]},
            )
        return parse_probe_duration(stdout)
