"""Pytest configuration and fixtures for the audio relay tests."""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add src to Python path
current_dir = Path(__file__).parent
src_dir = current_dir.parent / "src"
sys.path.insert(0, str(src_dir))

from core.directory import SourceDirectory
from core.history import InMemoryHistoryRecorder
from core.registry import ConnectionRegistry
from core.router import IceRoutingMode, MessageRouter
from core.coordinator import SessionCoordinator
from core.transport import Transport


class FakeTransport(Transport):
    """In-memory transport recording everything sent to it."""

    def __init__(self, name: str):
        super().__init__(name)
        self.sent: List[Dict[str, Any]] = []
        self.closed = False
        self.close_calls = 0

    @property
    def is_open(self) -> bool:
        return not self.closed

    def send(self, message: Dict[str, Any]) -> bool:
        if self.closed:
            return False
        self.sent.append(message)
        return True

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m.get("type") == message_type]


class ExplodingTransport(FakeTransport):
    """Transport whose send and close both raise."""

    def send(self, message: Dict[str, Any]) -> bool:
        raise ConnectionResetError("peer went away")

    def close(self) -> None:
        self.close_calls += 1
        raise ConnectionResetError("already gone")


class SlowStartHistoryRecorder(InMemoryHistoryRecorder):
    """Recorder whose start write yields long enough for a stop to overtake it."""

    async def record_start(self, source_id: str):
        await asyncio.sleep(0.01)
        return await super().record_start(source_id)


class FailingHistoryRecorder(InMemoryHistoryRecorder):
    async def record_start(self, source_id: str):
        raise RuntimeError("database unavailable")

    async def record_stop(self, source_id: str) -> None:
        raise RuntimeError("database unavailable")

    async def list_active_records(self):
        raise RuntimeError("database unavailable")


@pytest.fixture
def transport_factory():
    """Build named fake transports."""
    def _make(name: str, exploding: bool = False) -> FakeTransport:
        return ExplodingTransport(name) if exploding else FakeTransport(name)
    return _make


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def directory() -> SourceDirectory:
    return SourceDirectory()


@pytest.fixture
def router(registry, directory) -> MessageRouter:
    return MessageRouter(registry, directory)


@pytest.fixture
def flood_router(registry, directory) -> MessageRouter:
    return MessageRouter(registry, directory, IceRoutingMode.FLOOD)


@pytest.fixture
def history() -> InMemoryHistoryRecorder:
    return InMemoryHistoryRecorder()


def build_coordinator(history=None, ice_mode: IceRoutingMode = IceRoutingMode.DIRECTED) -> SessionCoordinator:
    registry = ConnectionRegistry()
    directory = SourceDirectory()
    return SessionCoordinator(
        registry,
        directory,
        MessageRouter(registry, directory, ice_mode),
        history if history is not None else InMemoryHistoryRecorder(),
    )


@pytest.fixture
def coordinator(history) -> SessionCoordinator:
    return build_coordinator(history)


@pytest.fixture
def settings(tmp_path):
    """Settings read from a throwaway config file."""
    from main import Settings

    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "settings:\n"
        "  log_level: DEBUG\n"
        "  log_color: false\n"
        "routing:\n"
        "  ice_mode: directed\n"
        "transport:\n"
        "  send_queue_size: 16\n",
        encoding="utf-8",
    )
    return Settings(str(config_file))


@pytest.fixture
def app_factory(settings):
    """Create an isolated FastAPI app around an optional coordinator."""
    from main import create_app

    def _make(coordinator: Optional[SessionCoordinator] = None):
        return create_app(settings=settings, coordinator=coordinator)
    return _make
