"""Logging handlers and utility functions."""

import enum
import logging
import traceback
from typing import Optional

from .formatters import LogError, LogRecord


class LogEvent(enum.Enum):
    # Connection lifecycle events
    CONNECTION_OPENED = "connection_opened"
    CONNECTION_CLOSED = "connection_closed"
    CONNECTION_CLEANUP_SKIPPED = "connection_cleanup_skipped"
    MESSAGE_FROM_CLOSED_CONNECTION = "message_from_closed_connection"

    # Registry events
    PARTICIPANT_REGISTERED = "participant_registered"
    PARTICIPANT_UNREGISTERED = "participant_unregistered"
    PARTICIPANT_EVICTED = "participant_evicted"
    IDENTITY_REPLACED = "identity_replaced"
    TRANSPORT_CLOSE_FAILED = "transport_close_failed"

    # Directory events
    SOURCE_ONLINE = "source_online"
    SOURCE_OFFLINE = "source_offline"

    # Routing events
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_MALFORMED = "message_malformed"
    MESSAGE_UNKNOWN_TYPE = "message_unknown_type"
    MESSAGE_ROUTED = "message_routed"
    ROUTING_MISS = "routing_miss"
    ROUTING_FAILED = "routing_failed"
    ICE_CANDIDATE_FLOODED = "ice_candidate_flooded"

    # Transport events
    SEND_DROPPED_CLOSED = "send_dropped_closed"
    SEND_DROPPED_BACKPRESSURE = "send_dropped_backpressure"
    TRANSPORT_WRITE_FAILED = "transport_write_failed"

    # History events
    HISTORY_START_RECORDED = "history_start_recorded"
    HISTORY_STOP_RECORDED = "history_stop_recorded"
    HISTORY_WRITE_FAILED = "history_write_failed"
    HISTORY_QUERY_FAILED = "history_query_failed"

    # System events
    CONFIG_LOAD_FAILED = "config_load_failed"
    FASTAPI_STARTUP_COMPLETE = "fastapi_startup_complete"
    FASTAPI_SHUTDOWN = "fastapi_shutdown"
    HTTP_REQUEST = "http_request"


# Initialize logger - will be set up when module is initialized
_logger = None


def init_logger(app_name: str = "audio-relay"):
    """Initialize the logger for this module."""
    global _logger
    _logger = logging.getLogger(app_name)


def _log(level: int, record: LogRecord, exc: Optional[Exception] = None) -> None:
    """Internal logging function."""
    if _logger is None:
        init_logger()

    try:
        if exc:
            try:
                record.error = LogError(
                    name=type(exc).__name__,
                    message=str(exc),
                    stack_trace="".join(
                        traceback.format_exception(type(exc), exc, exc.__traceback__)
                    ),
                    args=exc.args if hasattr(exc, "args") else tuple(),
                )
            except Exception:
                record.error = LogError(
                    name="ProcessingError",
                    message="Error occurred during exception processing",
                    stack_trace="",
                    args=tuple(),
                )

            if not record.message:
                record.message = str(exc) or "An unspecified error occurred"

        _logger.log(level=level, msg=record.message, extra={"log_record": record})
    except Exception:
        # Last resort: use standard Python logging without custom formatting
        logging.getLogger("fallback").log(level, f"Log error: {record.message}")


def debug(record: LogRecord):
    """Log a debug message."""
    _log(logging.DEBUG, record)


def info(record: LogRecord):
    """Log an info message."""
    _log(logging.INFO, record)


def warning(record: LogRecord, exc: Optional[Exception] = None):
    """Log a warning message."""
    _log(logging.WARNING, record, exc=exc)


def error(record: LogRecord, exc: Optional[Exception] = None):
    """Log an error message."""
    _log(logging.ERROR, record, exc=exc)

