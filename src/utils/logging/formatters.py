"""Custom logging formatters."""

import dataclasses
import json
import logging
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclasses.dataclass
class LogError:
    name: str
    message: str
    stack_trace: Optional[str] = None
    args: Optional[Tuple[Any, ...]] = None


@dataclasses.dataclass
class LogRecord:
    event: str
    message: str
    connection_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[LogError] = None


def _exc_info_dict(exc_info) -> Dict[str, Any]:
    exc_type, exc_value, exc_tb = exc_info
    return {
        "name": exc_type.__name__ if exc_type else "UnknownError",
        "message": str(exc_value),
        "stack_trace": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
        "args": exc_value.args if hasattr(exc_value, "args") else [],
    }


class ColoredConsoleFormatter(logging.Formatter):
    """Console formatter with color support and simplified output for CLI."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[95m', # Magenta
    }

    # Presence changes stand out from the negotiation chatter
    EVENT_COLORS = {
        "source_online": '\033[1;32m',
        "source_offline": '\033[1;33m',
    }

    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        log_dict = self._get_simplified_log_dict(record)

        # Only use colors if TTY output is available
        use_colors = (
            self.use_colors
            and hasattr(sys.stdout, 'isatty')
            and sys.stdout.isatty()
        )

        formatted_json = json.dumps(log_dict, ensure_ascii=False, default=str)
        if not use_colors:
            return formatted_json

        event = log_dict.get('event', '')
        color = self.EVENT_COLORS.get(event) or self.COLORS.get(record.levelname, '')
        return f"{color}{formatted_json}{self.RESET}"

    def _get_simplified_log_dict(self, record: logging.LogRecord) -> dict:
        """Extract simplified log dictionary for console output."""
        log_payload = getattr(record, "log_record", None)

        if not isinstance(log_payload, LogRecord):
            return {
                "time": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "message": record.getMessage()
            }

        # Truncate very long messages for console output
        message = log_payload.message
        if len(message) > 200:
            message = message[:200] + "..."

        simplified = {
            "time": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
            "level": record.levelname,
            "event": log_payload.event,
            "message": message
        }

        if log_payload.connection_id:
            simplified["conn"] = log_payload.connection_id[:8]

        if log_payload.error and record.levelname in ['ERROR', 'WARNING', 'CRITICAL']:
            simplified["error"] = log_payload.error.name
            if log_payload.error.name == "ValidationError":
                simplified["error_msg"] = "Validation error (see log file for details)"
            elif log_payload.error.message != log_payload.message:
                simplified["error_msg"] = log_payload.error.message[:100]

        # Participant fields are the ones worth seeing at a glance
        if log_payload.data:
            essential_fields = ['type', 'source_id', 'receiver_id', 'participant_id', 'role']
            for field in essential_fields:
                if field in log_payload.data:
                    simplified[field] = log_payload.data[field]

        return simplified


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        header = {
            "timestamp": datetime.fromtimestamp(
                record.created
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        log_payload = getattr(record, "log_record", None)
        if isinstance(log_payload, LogRecord):
            header["detail"] = dataclasses.asdict(log_payload)
        else:
            header["message"] = record.getMessage()
            if record.exc_info:
                header["error"] = _exc_info_dict(record.exc_info)
        return json.dumps(header, ensure_ascii=False, default=str)


class ConsoleJSONFormatter(JSONFormatter):
    def format(self, record: logging.LogRecord) -> str:
        log_dict = json.loads(super().format(record))
        if (
            "detail" in log_dict
            and "error" in log_dict["detail"]
            and log_dict["detail"]["error"]
        ):
            log_dict["detail"]["error"].pop("stack_trace", None)
        elif "error" in log_dict and log_dict["error"]:
            log_dict["error"].pop("stack_trace", None)
        return json.dumps(log_dict, default=str)


class UvicornAccessFormatter(logging.Formatter):
    """Special formatter for uvicorn access logs to match application log colors."""

    # light gray for info messages
    INFO_GRAY = '\033[38;5;244m'
    RESET = '\033[0m'

    def __init__(self):
        super().__init__(fmt="%(levelname)s:     %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        formatted_message = super().format(record)

        use_colors = (
            hasattr(sys, 'stdout')
            and hasattr(sys.stdout, 'isatty')
            and sys.stdout.isatty()
        )

        if use_colors:
            return f"{self.INFO_GRAY}{formatted_message}{self.RESET}"
        return formatted_message
