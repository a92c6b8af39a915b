"""Structured logging for the relay."""

from .formatters import (
    LogError,
    LogRecord,
    ColoredConsoleFormatter,
    JSONFormatter,
    ConsoleJSONFormatter,
    UvicornAccessFormatter,
)

from .handlers import (
    LogEvent,
    init_logger,
    debug,
    info,
    warning,
    error,
)

__all__ = [
    "LogError",
    "LogRecord",
    "ColoredConsoleFormatter",
    "JSONFormatter",
    "ConsoleJSONFormatter",
    "UvicornAccessFormatter",
    "LogEvent",
    "init_logger",
    "debug",
    "info",
    "warning",
    "error",
]
