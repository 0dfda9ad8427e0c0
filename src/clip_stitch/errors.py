"""Error taxonomy for clip-stitch.

Every error below is scoped to the single instruction or group that raised
it. The pipeline records it and moves on; only configuration errors stop a
run before any work starts.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from clip_stitch.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    """Categories of errors for handling decisions."""

    VALIDATION = "validation"  # Bad instruction row
    CONFIGURATION = "configuration"  # Bad or missing settings
    RESOURCE = "resource"  # Missing executable or file
    TRANSCODE = "transcode"  # ffmpeg / ffprobe failure
    STORE = "store"  # Record store failure
    INTERNAL = "internal"  # Bug in code


class ClipStitchError(Exception):
    """Base exception for clip-stitch errors.

    Attributes:
        message: Human-readable error message
        category: Error category for handling
        context: Additional context information
    """

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class MalformedTimecode(ClipStitchError):
    """A timestamp string could not be parsed."""

    category = ErrorCategory.VALIDATION


class InvalidTimeRange(ClipStitchError):
    """An out-point precedes its in-point."""

    category = ErrorCategory.VALIDATION


class IncompleteInstruction(ClipStitchError):
    """An input row is missing a required property."""

    category = ErrorCategory.VALIDATION


class ConfigurationError(ClipStitchError):
    """Missing credential, database id, or an unusable setting."""

    category = ErrorCategory.CONFIGURATION


class FFmpegNotFoundError(ClipStitchError):
    """ffmpeg or ffprobe could not be located."""

    category = ErrorCategory.RESOURCE


class TranscodeError(ClipStitchError):
    """ffmpeg exited non-zero or could not be started."""

    category = ErrorCategory.TRANSCODE


class ExtractionFailed(TranscodeError):
    """Cutting one instruction's clip out of its source failed."""


class SynthesisFailed(TranscodeError):
    """A combination or palette stage for a group failed."""


class ProbeFailed(TranscodeError):
    """ffprobe output did not contain a usable duration."""


class RecordSyncFailed(ClipStitchError):
    """A read or write against a record store failed."""

    category = ErrorCategory.STORE


def format_error_for_display(error: BaseException) -> str:
    """Format an error message for user display.

    Args:
        error: Error to format

    Returns:
        Human-readable error message
    """
    if isinstance(error, ClipStitchError):
        category = error.category.value
        if error.context:
            context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
            return f"[{category}] {error.message} ({context_str})"
        return f"[{category}] {error.message}"

    return f"[error] {type(error).__name__}: {error}"


def wrap_unit_error(error: BaseException, wrapper: type[ClipStitchError], **context: Any) -> ClipStitchError:
    """Normalise an error raised inside a unit of work.

    ClipStitchErrors pass through untouched; anything else is wrapped in
    ``wrapper`` so reports always carry a category.
    """
    if isinstance(error, ClipStitchError):
        return error
    logger.debug(f"Wrapping {type(error).__name__} as {wrapper.__name__}", extra=context)
    return wrapper(f"{type(error).__name__}: {error}", context=context)
