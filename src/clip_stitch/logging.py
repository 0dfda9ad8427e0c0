"""Structured logging for clip-stitch.

Every pipeline unit logs through ``get_logger(__name__)``. Context passed via
``extra=`` (instruction ids, combination codes, command lines) is rendered as
``key=value`` pairs in text mode or as a ``context`` object in JSON mode.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any

ROOT_LOGGER_NAME = "clip_stitch"

# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRIBUTES = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "pathname", "process",
        "processName", "relativeCreated", "stack_info", "exc_info", "exc_text",
        "thread", "threadName", "message", "taskName",
    }
)


class LogLevel(IntEnum):
    """Log verbosity levels."""

    QUIET = 0  # Only errors
    NORMAL = 1  # Errors + warnings + key info
    VERBOSE = 2  # Errors + warnings + info
    DEBUG = 3  # Everything including ffmpeg command lines


_LEVEL_MAP = {
    LogLevel.QUIET: logging.ERROR,
    LogLevel.NORMAL: logging.WARNING,
    LogLevel.VERBOSE: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


@dataclass
class LogConfig:
    """Configuration for logging.

    Attributes:
        level: Verbosity level
        log_file: Optional path to log file
        json_format: Use JSON format for logs
        color: Use colored output (console only)
    """

    level: LogLevel = LogLevel.NORMAL
    log_file: Path | None = None
    json_format: bool = False
    color: bool = True


class _Ansi:
    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Return the extra= fields attached to a record."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRIBUTES
    }


class StructuredFormatter(logging.Formatter):
    """Formatter producing either one JSON object or one text line per record."""

    LEVEL_COLORS = {
        logging.DEBUG: _Ansi.GRAY,
        logging.INFO: _Ansi.GREEN,
        logging.WARNING: _Ansi.YELLOW,
        logging.ERROR: _Ansi.RED,
        logging.CRITICAL: _Ansi.RED,
    }

    def __init__(self, json_format: bool = False, color: bool = True):
        super().__init__()
        self.json_format = json_format
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_json(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = {}
        for key, value in record_context(record).items():
            try:
                json.dumps(value)
                context[key] = value
            except (TypeError, ValueError):
                context[key] = str(value)
        if context:
            data["context"] = context

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data)

    def _paint(self, text: str, color: str) -> str:
        if not self.color:
            return text
        return f"{color}{text}{_Ansi.RESET}"

    def _format_text(self, record: logging.LogRecord) -> str:
        name = record.name
        if len(name) > 20:
            name = "..." + name[-17:]

        parts = [
            self._paint(datetime.now().strftime("%Y-%m-%d %H:%M:%S"), _Ansi.GRAY),
            self._paint(
                record.levelname.upper()[:5].ljust(5),
                self.LEVEL_COLORS.get(record.levelno, _Ansi.RESET),
            ),
            self._paint(f"{name:>20}", _Ansi.CYAN),
            record.getMessage(),
        ]
        result = " | ".join(parts)

        context = record_context(record)
        if context:
            context_str = " ".join(f"{k}={v}" for k, v in context.items())
            result += " " + self._paint(f"[{context_str}]", _Ansi.GRAY)

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


class StitchLogger(logging.Logger):
    """Logger that merges bound context into every record's extra."""

    def __init__(self, name: str, level: int = logging.NOTSET):
        super().__init__(name, level)
        self._context: dict[str, Any] = {}

    def bind(self, **context: Any) -> "StitchLogger":
        """Return a logger that adds ``context`` to every record."""
        bound = StitchLogger(self.name, self.level)
        bound.parent = self.parent
        bound.handlers = self.handlers
        bound._context = {**self._context, **context}
        return bound

    def _log(
        self,
        level: int,
        msg: object,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
    ) -> None:
        merged = {**self._context, **(extra or {})}
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=merged,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


_config: LogConfig = LogConfig()
_initialized: bool = False


def configure_logging(config: LogConfig | None = None) -> None:
    """Install handlers on the ``clip_stitch`` root logger.

    Args:
        config: Logging configuration; the previous one is reused when omitted
    """
    global _config, _initialized

    if config:
        _config = config

    logging.setLoggerClass(StitchLogger)
    log_level = _LEVEL_MAP[_config.level]

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG if _config.log_file else log_level)
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        StructuredFormatter(
            json_format=_config.json_format,
            color=_config.color and sys.stderr.isatty(),
        )
    )
    root_logger.addHandler(console_handler)

    if _config.log_file:
        _config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(_config.log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter(json_format=_config.json_format, color=False))
        root_logger.addHandler(file_handler)

    _initialized = True


def get_logger(name: str) -> StitchLogger:
    """Get a logger for the given name (usually ``__name__``)."""
    if not _initialized:
        configure_logging()

    logger = logging.getLogger(name)
    if not isinstance(logger, StitchLogger):
        # Created before our logger class was installed.
        custom_logger = StitchLogger(name)
        custom_logger.parent = logging.getLogger(ROOT_LOGGER_NAME)
        custom_logger.level = logger.level
        return custom_logger

    return logger


def log_operation_start(logger: logging.Logger, operation: str, **context: Any) -> None:
    """Log the start of an operation."""
    logger.info(f"Starting: {operation}", extra=context)


def log_operation_complete(
    logger: logging.Logger,
    operation: str,
    duration: float | None = None,
    **context: Any,
) -> None:
    """Log the completion of an operation.

    Args:
        logger: Logger to use
        operation: Operation name
        duration: Optional wall-clock duration in seconds
        **context: Additional context
    """
    if duration is not None:
        context["duration_seconds"] = round(duration, 2)
    logger.info(f"Completed: {operation}", extra=context)


def log_operation_failed(
    logger: logging.Logger,
    operation: str,
    error: BaseException,
    **context: Any,
) -> None:
    """Log a failed operation with its error type and message."""
    context["error_type"] = type(error).__name__
    context["error_message"] = str(error)
    logger.error(f"Failed: {operation}", extra=context)
