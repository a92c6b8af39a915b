"""
Transport abstraction for signaling connections.

The relay only needs three things from a connection: a non-blocking send, a
best-effort close and a liveness flag. ``WebSocketTransport`` provides them on
top of a FastAPI WebSocket with a bounded outbound queue drained by a
per-connection writer task, so a slow peer never holds up routing.
"""

import asyncio
import json
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from fastapi.websockets import WebSocket, WebSocketState

from utils.logging import debug, warning, LogRecord, LogEvent


class Transport(ABC):
    """A duplex message channel owned by one participant."""

    def __init__(self, connection_id: Optional[str] = None):
        self.connection_id = connection_id or uuid.uuid4().hex

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    def send(self, message: Dict[str, Any]) -> bool:
        """Queue a message without blocking. Returns False if it was dropped."""

    @abstractmethod
    def close(self) -> None:
        """Close the channel. Must not block and must tolerate repeated calls."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.connection_id[:8]})"


_CLOSE = object()


class WebSocketTransport(Transport):
    """Transport backed by a FastAPI WebSocket and a bounded send queue."""

    def __init__(self, websocket: WebSocket, queue_size: int = 64, connection_id: Optional[str] = None):
        super().__init__(connection_id)
        self.websocket = websocket
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self._writer: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    def send(self, message: Dict[str, Any]) -> bool:
        if not self.is_open:
            debug(LogRecord(
                LogEvent.SEND_DROPPED_CLOSED.value,
                f"Dropped '{message.get('type')}' for closed transport",
                self.connection_id,
                {"type": message.get("type")},
            ))
            return False

        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            debug(LogRecord(
                LogEvent.SEND_DROPPED_BACKPRESSURE.value,
                f"Dropped '{message.get('type')}', send queue full ({self._queue.maxsize})",
                self.connection_id,
                {"type": message.get("type"), "queue_size": self._queue.maxsize},
            ))
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._writer is None or self._writer.done():
            self._shutdown_task = asyncio.create_task(self._close_socket())
            return

        try:
            self._queue.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            # Writer is backed up; abandon the backlog and close directly
            self._writer.cancel()
            self._shutdown_task = asyncio.create_task(self._close_socket())

    async def wait_closed(self) -> None:
        """Wait for the writer to finish after ``close``."""
        tasks = [task for task in (self._writer, self._shutdown_task) if task is not None]
        if tasks:
            await asyncio.wait(tasks)

    async def _write_loop(self) -> None:
        while True:
            message = await self._queue.get()
            if message is _CLOSE:
                await self._close_socket()
                return
            try:
                await self.websocket.send_text(json.dumps(message))
            except Exception as e:
                # The close event of this connection cleans up its registry entry
                self._closed = True
                debug(LogRecord(
                    LogEvent.TRANSPORT_WRITE_FAILED.value,
                    f"Write failed: {type(e).__name__}: {e}",
                    self.connection_id,
                    {"type": message.get("type")},
                ))
                return

    async def _close_socket(self) -> None:
        if self.websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.close()
        except Exception as e:
            warning(LogRecord(
                LogEvent.TRANSPORT_CLOSE_FAILED.value,
                f"WebSocket close failed: {type(e).__name__}: {e}",
                self.connection_id,
            ))
