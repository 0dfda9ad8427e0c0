"""Timestamp parsing and arithmetic.

Timestamps are kept as ``(hours, minutes, seconds, tenths)`` rather than
floats so that subtraction is exact and the ``HH:MM:SS.t`` form handed to
ffmpeg is reproduced digit for digit.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from clip_stitch.errors import InvalidTimeRange, MalformedTimecode


class Timecode(NamedTuple):
    """A timestamp with tenth-of-a-second resolution."""

    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    tenths: int = 0

    def __str__(self) -> str:
        return format_timecode(self)


ZERO = Timecode()

_ASCII_DIGITS = re.compile(r"[0-9]+")


def _parse_int(segment: str, text: str) -> int:
    if not _ASCII_DIGITS.fullmatch(segment):
        raise MalformedTimecode(f"Non-numeric segment {segment!r} in timestamp {text!r}")
    return int(segment)


def parse(text: str) -> Timecode:
    """Parse ``MM:SS`` or ``HH:MM:SS``, with an optional fraction on seconds.

    Only the first fractional digit is kept: ``"00:00:01.99"`` parses to one
    second and nine tenths.

    Raises:
        MalformedTimecode: Wrong number of segments or a non-numeric part.
    """
    segments = text.strip().split(":")
    if len(segments) == 2:
        hours_text = "0"
        minutes_text, seconds_text = segments
    elif len(segments) == 3:
        hours_text, minutes_text, seconds_text = segments
    else:
        raise MalformedTimecode(
            f"Expected MM:SS or HH:MM:SS, got {text!r}",
            context={"segments": len(segments)},
        )

    tenths = 0
    if "." in seconds_text:
        seconds_text, fraction = seconds_text.split(".", 1)
        if fraction:
            tenths = _parse_int(fraction[:1], text)
            # Digits past the first are dropped but must still be digits.
            _parse_int(fraction, text)

    timecode = Timecode(
        _parse_int(hours_text, text),
        _parse_int(minutes_text, text),
        _parse_int(seconds_text, text),
        tenths,
    )
    if timecode.minutes >= 60 or timecode.seconds >= 60:
        raise MalformedTimecode(f"Minutes and seconds must be below 60 in {text!r}")
    return timecode


def subtract(end: Timecode, start: Timecode) -> Timecode:
    """Return ``end - start``, borrowing tenths -> seconds -> minutes -> hours.

    Raises:
        InvalidTimeRange: ``end`` precedes ``start``.
    """
    hours, minutes, seconds, tenths = end

    if tenths < start.tenths:
        seconds -= 1
        tenths += 10
    tenths -= start.tenths

    if seconds < start.seconds:
        minutes -= 1
        seconds += 60
    seconds -= start.seconds

    if minutes < start.minutes:
        hours -= 1
        minutes += 60
    minutes -= start.minutes

    hours -= start.hours

    if hours < 0:
        raise InvalidTimeRange(
            f"Out-point {format_timecode(end)} precedes in-point {format_timecode(start)}",
            context={"start": format_timecode(start), "end": format_timecode(end)},
        )
    return Timecode(hours, minutes, seconds, tenths)


def to_seconds(timecode: Timecode) -> int:
    """Whole seconds in ``timecode``; tenths are dropped, not rounded."""
    return timecode.hours * 3600 + timecode.minutes * 60 + timecode.seconds


def format_timecode(timecode: Timecode) -> str:
    """Render as ``HH:MM:SS.t``, the form ffmpeg takes for ``-ss`` and ``-t``."""
    return f"{timecode.hours:02d}:{timecode.minutes:02d}:{timecode.seconds:02d}.{timecode.tenths:d}"
