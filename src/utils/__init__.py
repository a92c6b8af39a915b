"""
Utility modules for the audio relay signaling server.

This package contains:
- Logging utilities with colored console output and JSON formatting
"""

# Re-export commonly used logging functions
from .logging import (
    LogRecord, LogEvent, LogError,
    ColoredConsoleFormatter, JSONFormatter, ConsoleJSONFormatter,
    init_logger, debug, info, warning, error,
)

__all__ = [
    "LogRecord", "LogEvent", "LogError",
    "ColoredConsoleFormatter", "JSONFormatter", "ConsoleJSONFormatter",
    "init_logger", "debug", "info", "warning", "error",
]
