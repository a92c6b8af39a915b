"""
Audio Relay - Main Application Entry Point

FastAPI application hosting the WebSocket signaling relay between audio
sources and receivers, plus its read-only query endpoints.
"""

import argparse
import os
import sys
import time
from contextlib import asynccontextmanager
from logging.config import dictConfig
from pathlib import Path
from typing import Optional

import fastapi
import uvicorn
import yaml
from dotenv import load_dotenv
from fastapi import Request
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

# Configure path for imports
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.insert(0, current_dir)

from core.coordinator import SessionCoordinator, create_coordinator
from core.router import IceRoutingMode
from utils import (
    LogRecord, LogEvent, ColoredConsoleFormatter, JSONFormatter,
    init_logger, debug, info, warning
)
from routers import create_health_router, create_query_router, create_signaling_router

load_dotenv()

# Rich console for startup display
_console = Console()

# ===== CONFIGURATION =====

class Settings:
    """Application settings loaded from the YAML config file."""

    def __init__(self, config_path: str = "config.yaml"):
        # Default values
        self.log_level: str = "INFO"
        self.log_file_path: str = ""
        self.log_color: bool = True
        self.host: str = "127.0.0.1"
        self.port: int = 9090
        self.app_name: str = "Audio Relay"
        self.app_version: str = "0.1.0"

        # Routing settings
        self.ice_mode: str = IceRoutingMode.DIRECTED.value

        # Transport settings
        self.ws_path: str = "/ws"
        self.send_queue_size: int = 64

        self.config_path: Optional[Path] = None
        self.load_error: Optional[str] = None

        self.load_from_config(config_path)

    def load_from_config(self, config_path: str):
        """Load settings from configuration file, keeping defaults on failure."""
        config_path = _resolve_config_path(config_path)
        self.config_path = config_path
        if not config_path.exists():
            return

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}

            for key, value in (config.get('settings') or {}).items():
                if hasattr(self, key):
                    # Log file path is relative to the project root
                    if key == "log_file_path" and value and not os.path.isabs(value):
                        value = str(Path(__file__).parent.parent / value)
                    setattr(self, key, value)

            routing_config = config.get('routing') or {}
            if 'ice_mode' in routing_config:
                self.ice_mode = routing_config['ice_mode']

            transport_config = config.get('transport') or {}
            self.ws_path = transport_config.get('path', self.ws_path)
            self.send_queue_size = int(transport_config.get('send_queue_size', self.send_queue_size))

        except Exception as e:
            self.load_error = f"Failed to load settings from {config_path}: {e}"

        try:
            IceRoutingMode(self.ice_mode)
        except ValueError:
            self.load_error = f"Unknown ice_mode '{self.ice_mode}', using '{IceRoutingMode.DIRECTED.value}'"
            self.ice_mode = IceRoutingMode.DIRECTED.value


def _resolve_config_path(config_path: str) -> Path:
    path = Path(config_path)
    if not path.is_absolute():
        path = Path(__file__).parent.parent / path
    return path


def setup_logging(settings: Settings) -> dict:
    """Setup logging configuration."""
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "colored_console": {"()": ColoredConsoleFormatter, "use_colors": settings.log_color},
            "json": {"()": JSONFormatter},
            "uvicorn_access": {"()": "utils.logging.formatters.UvicornAccessFormatter"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": "colored_console",
                "stream": "ext://sys.stdout",
            },
            "uvicorn_access": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "uvicorn_access",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            settings.app_name: {
                "level": settings.log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["uvicorn_access"],
                "propagate": False,
            },
        },
    }

    # Add file handler if configured
    if settings.log_file_path:
        log_config["handlers"]["file"] = {
            "class": "logging.FileHandler",
            "level": settings.log_level,
            "formatter": "json",
            "filename": settings.log_file_path,
            "mode": "a",
            "encoding": "utf-8",
        }
        log_config["loggers"][settings.app_name]["handlers"].append("file")

    dictConfig(log_config)
    return log_config

# ===== FASTAPI APPLICATION =====

@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    """FastAPI lifespan event handler."""
    info(LogRecord(
        event=LogEvent.FASTAPI_STARTUP_COMPLETE.value,
        message="FastAPI application startup complete",
        data={"ice_mode": app.state.settings.ice_mode, "ws_path": app.state.settings.ws_path},
    ))

    yield

    # Let pending history writes land before the process exits
    coordinator: SessionCoordinator = app.state.coordinator
    await coordinator.wait_idle()
    info(LogRecord(
        event=LogEvent.FASTAPI_SHUTDOWN.value,
        message="FastAPI application shutting down",
        data=coordinator.stats(),
    ))


def create_app(
    config_path: str = "config.yaml",
    settings: Optional[Settings] = None,
    coordinator: Optional[SessionCoordinator] = None,
) -> fastapi.FastAPI:
    """Create FastAPI application with its own relay state."""
    local_settings = settings or Settings(config_path)

    init_logger(local_settings.app_name)
    setup_logging(local_settings)
    if local_settings.load_error:
        warning(LogRecord(
            event=LogEvent.CONFIG_LOAD_FAILED.value,
            message=local_settings.load_error,
        ))

    local_coordinator = coordinator or create_coordinator(IceRoutingMode(local_settings.ice_mode))

    app = fastapi.FastAPI(
        title=local_settings.app_name,
        version=local_settings.app_version,
        description="WebSocket signaling relay for one-to-many audio sessions",
        lifespan=lifespan,
    )

    app.state.settings = local_settings
    app.state.coordinator = local_coordinator

    app.include_router(create_signaling_router(
        local_coordinator,
        path=local_settings.ws_path,
        send_queue_size=local_settings.send_queue_size,
    ))
    app.include_router(create_query_router(local_coordinator))
    app.include_router(create_health_router(local_coordinator, local_settings.app_name, local_settings.app_version))

    # Request logging middleware
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        debug(LogRecord(
            event=LogEvent.HTTP_REQUEST.value,
            message=f"{request.method} {request.url.path}",
            data={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time": round(process_time, 3),
            },
        ))

        return response

    return app

# ===== STARTUP BANNER =====

def display_startup_banner(settings: Settings):
    """Display startup banner with configuration info."""
    _console.print(Rule("AUDIO RELAY", style="bold green"))

    config_display = str(settings.config_path) if settings.config_path and settings.config_path.exists() else "defaults"
    ice_color = "bold green" if settings.ice_mode == IceRoutingMode.DIRECTED.value else "bold yellow"

    config_text = Text.assemble(
        ("   Version       : ", "default"),
        (f"v{settings.app_version}", "bold cyan"),
        ("\n   Config        : ", "default"),
        (config_display, "dim"),
        ("\n   ICE Routing   : ", "default"),
        (settings.ice_mode, ice_color),
        ("\n   Send Queue    : ", "default"),
        (str(settings.send_queue_size), "default"),
        ("\n   Log Level     : ", "default"),
        (settings.log_level.upper(), "yellow"),
        ("\n   Log File      : ", "default"),
        (settings.log_file_path or "Disabled", "dim"),
        ("\n   Signaling     : ", "default"),
        (f"ws://{settings.host}:{settings.port}{settings.ws_path}", "default"),
        ("\n   Listening on  : ", "default"),
        (f"http://{settings.host}:{settings.port}", "default"),
    )

    _console.print(Panel(
        config_text,
        title="Audio Relay Configuration",
        border_style="blue",
        expand=False,
    ))
    _console.print(Rule("Starting uvicorn server ...", style="dim blue"))

# ===== COMMAND LINE INTERFACE =====

def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Audio Relay signaling server')
    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )
    parser.add_argument(
        '--port',
        type=int,
        help='Port to run the server on (overrides config file)'
    )
    parser.add_argument(
        '--host',
        type=str,
        help='Host to bind the server to (overrides config file)'
    )
    parser.add_argument(
        '--ice-mode',
        type=str,
        choices=[mode.value for mode in IceRoutingMode],
        help='ICE candidate routing: directed (default) or legacy flood'
    )
    return parser.parse_args(argv)

# ===== GLOBAL VARIABLES =====

# Create app instance for uvicorn
app = create_app()


def main():
    """Main entry point."""
    args = parse_args()

    settings = Settings(args.config)
    if args.port:
        settings.port = args.port
    if args.host:
        settings.host = args.host
    if args.ice_mode:
        settings.ice_mode = args.ice_mode

    global app
    app = create_app(settings=settings)

    display_startup_banner(settings)

    log_config = setup_logging(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=log_config,
    )


if __name__ == "__main__":
    main()
