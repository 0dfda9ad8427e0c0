"""FFmpeg binary discovery for clip-stitch.

ffmpeg is looked up in order: an explicitly configured path, the binary
bundled with imageio-ffmpeg, then the system PATH. imageio-ffmpeg ships no
ffprobe, so ffprobe is looked for next to the bundled ffmpeg before PATH.
"""

from __future__ import annotations

import platform
import shutil
import subprocess
import sys
from pathlib import Path
from typing import NamedTuple

import imageio_ffmpeg
from pydantic import BaseModel, Field


class FFmpegInfo(NamedTuple):
    """Information about a located executable."""

    path: str
    version: str
    available: bool
    source: str  # "custom", "imageio", "system", or "not_found"


class FFmpegConfig(BaseModel):
    """Configuration for FFmpeg binary location."""

    custom_ffmpeg_path: str | None = Field(
        default=None,
        description="Custom path to FFmpeg executable"
    )
    custom_ffprobe_path: str | None = Field(
        default=None,
        description="Custom path to FFprobe executable"
    )
    prefer_system: bool = Field(
        default=False,
        description="Prefer system FFmpeg over the imageio-ffmpeg bundle"
    )


def _get_ffmpeg_from_imageio() -> str | None:
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError:
        return None


def _get_ffprobe_from_imageio() -> str | None:
    ffmpeg_path = _get_ffmpeg_from_imageio()
    if ffmpeg_path is None:
        return None

    name = "ffprobe.exe" if platform.system() == "Windows" else "ffprobe"
    ffprobe_path = Path(ffmpeg_path).parent / name
    if ffprobe_path.exists():
        return str(ffprobe_path)
    return None


def _locate(
    custom_path: str | None,
    prefer_system: bool,
    system_name: str,
    bundled,
) -> tuple[str | None, str]:
    """Resolve one executable, returning ``(path, source)``."""
    if custom_path and Path(custom_path).exists():
        return custom_path, "custom"

    system_path = shutil.which(system_name)
    if prefer_system and system_path:
        return system_path, "system"

    bundled_path = bundled()
    if bundled_path:
        return bundled_path, "imageio"

    if system_path:
        return system_path, "system"
    return None, "not_found"


def get_ffmpeg_path(config: FFmpegConfig | None = None) -> str | None:
    """Get the path to the FFmpeg executable, or None if not found."""
    config = config or FFmpegConfig()
    path, _ = _locate(
        config.custom_ffmpeg_path, config.prefer_system, "ffmpeg", _get_ffmpeg_from_imageio
    )
    return path


def get_ffprobe_path(config: FFmpegConfig | None = None) -> str | None:
    """Get the path to the FFprobe executable, or None if not found."""
    config = config or FFmpegConfig()
    path, _ = _locate(
        config.custom_ffprobe_path, config.prefer_system, "ffprobe", _get_ffprobe_from_imageio
    )
    return path


def _get_version(executable: str) -> str | None:
    """Read the version from ``<executable> -version``'s first line."""
    try:
        result = subprocess.run(
            [executable, "-version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (subprocess.TimeoutExpired, OSError):
        return None

    if result.returncode != 0:
        return None

    # e.g. "ffmpeg version 6.0-static https://johnvansickle.com/ffmpeg/"
    first_line = result.stdout.split("\n")[0]
    if "version" in first_line:
        tail = first_line.split("version", 1)[1].strip().split()
        if tail:
            return tail[0]
    return first_line.strip() or None


def _info(path: str | None, source: str) -> FFmpegInfo:
    if path is None:
        return FFmpegInfo(path="", version="", available=False, source="not_found")

    version = _get_version(path)
    if version is None:
        return FFmpegInfo(path=path, version="", available=False, source=source)
    return FFmpegInfo(path=path, version=version, available=True, source=source)


def get_ffmpeg_info(config: FFmpegConfig | None = None) -> FFmpegInfo:
    """Locate FFmpeg and check that it runs."""
    config = config or FFmpegConfig()
    return _info(*_locate(
        config.custom_ffmpeg_path, config.prefer_system, "ffmpeg", _get_ffmpeg_from_imageio
    ))


def get_ffprobe_info(config: FFmpegConfig | None = None) -> FFmpegInfo:
    """Locate FFprobe and check that it runs."""
    config = config or FFmpegConfig()
    return _info(*_locate(
        config.custom_ffprobe_path, config.prefer_system, "ffprobe", _get_ffprobe_from_imageio
    ))


def get_dependency_report(config: FFmpegConfig | None = None) -> dict[str, dict[str, str | bool]]:
    """Generate a dependency report for ``check-deps``."""
    report: dict[str, dict[str, str | bool]] = {}
    for name, info in (
        ("ffmpeg", get_ffmpeg_info(config)),
        ("ffprobe", get_ffprobe_info(config)),
    ):
        report[name] = {
            "available": info.available,
            "path": info.path,
            "version": info.version,
            "source": info.source,
        }

    report["imageio_ffmpeg"] = {
        "available": True,
        "version": getattr(imageio_ffmpeg, "__version__", "unknown"),
    }
    report["platform"] = {
        "system": platform.system(),
        "machine": platform.machine(),
        "python": sys.version.split()[0],
    }
    return report
