"""
Session coordinator: per-connection lifecycle of the signaling relay.

Every connection is a ``Session`` moving through
``CONNECTED -> IDENTIFIED_SOURCE | IDENTIFIED_RECEIVER -> CLOSED``. The
coordinator owns the one lock that serialises registry, directory and router
dispatch. Sends and history writes happen after the lock is released.

The coordinator is transport-agnostic: it is driven by ``handle_text``,
``handle_message`` and ``disconnect`` calls, so tests feed it synthetic
events with fake transports.
"""

import asyncio
import dataclasses
import enum
import functools
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from core.directory import SourceDirectory
from core.errors import MalformedMessageError
from core.history import HistoryRecorder, InMemoryHistoryRecorder
from core.registry import ConnectionRegistry
from core.router import IceRoutingMode, MessageRouter, RoutingResult, decode_message
from core.transport import Transport
from models import Role
from utils.logging import debug, info, warning, error, LogRecord, LogEvent


class SessionState(str, enum.Enum):
    CONNECTED = "connected"
    IDENTIFIED_SOURCE = "identified_source"
    IDENTIFIED_RECEIVER = "identified_receiver"
    CLOSED = "closed"


_ROLE_STATES = {
    Role.SOURCE: SessionState.IDENTIFIED_SOURCE,
    Role.RECEIVER: SessionState.IDENTIFIED_RECEIVER,
}


@dataclasses.dataclass
class Session:
    transport: Transport
    state: SessionState = SessionState.CONNECTED
    participant_id: Optional[str] = None

    @property
    def connection_id(self) -> str:
        return self.transport.connection_id


class SessionCoordinator:
    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: SourceDirectory,
        router: MessageRouter,
        history: HistoryRecorder,
    ):
        self.registry = registry
        self.directory = directory
        self.router = router
        self.history = history
        self._lock = asyncio.Lock()
        self._history_tasks: Set[asyncio.Task] = set()
        # Last pending history write per source; the next one waits on it
        self._history_tails: Dict[str, asyncio.Task] = {}

    def connect(self, transport: Transport) -> Session:
        info(LogRecord(
            LogEvent.CONNECTION_OPENED.value,
            "Signaling connection opened",
            transport.connection_id,
        ))
        return Session(transport)

    async def handle_text(self, session: Session, text: Union[str, bytes]) -> None:
        """Handle one raw frame from the session's transport."""
        try:
            raw = decode_message(text)
        except MalformedMessageError as e:
            warning(LogRecord(LogEvent.MESSAGE_MALFORMED.value, str(e), session.connection_id))
            return
        await self.handle_message(session, raw)

    async def handle_message(self, session: Session, raw: Dict[str, Any]) -> None:
        if session.state == SessionState.CLOSED:
            debug(LogRecord(
                LogEvent.MESSAGE_FROM_CLOSED_CONNECTION.value,
                "Ignored message from closed connection",
                session.connection_id,
                {"type": raw.get("type")},
            ))
            return

        async with self._lock:
            try:
                result = self.router.route(session.transport, raw)
            except Exception as e:
                error(LogRecord(
                    LogEvent.ROUTING_FAILED.value,
                    f"Routing '{raw.get('type')}' failed: {type(e).__name__}: {e}",
                    session.connection_id,
                    {"type": raw.get("type")},
                ), exc=e)
                return
            self._sync_state(session)
        self._dispatch(result)

    async def disconnect(self, session: Session) -> None:
        """Run the close path exactly once per session."""
        if session.state == SessionState.CLOSED:
            debug(LogRecord(
                LogEvent.CONNECTION_CLEANUP_SKIPPED.value,
                "Connection already closed",
                session.connection_id,
            ))
            return

        previous_id = session.participant_id
        session.state = SessionState.CLOSED
        session.participant_id = None

        async with self._lock:
            result = self.router.release(session.transport)

        info(LogRecord(
            LogEvent.CONNECTION_CLOSED.value,
            f"Signaling connection closed ({previous_id or 'unidentified'})",
            session.connection_id,
            {"participant_id": previous_id, "stopped_sources": result.stopped},
        ))
        self._dispatch(result)

    def stats(self) -> Dict[str, int]:
        return {
            "liveSources": self.registry.count(Role.SOURCE),
            "liveReceivers": self.registry.count(Role.RECEIVER),
        }

    async def wait_idle(self) -> None:
        """Wait for scheduled history writes to finish."""
        while self._history_tasks:
            await asyncio.gather(*list(self._history_tasks), return_exceptions=True)

    def _sync_state(self, session: Session) -> None:
        # Eviction or retire-source elsewhere can drop this session's identity
        participant = self.registry.lookup_by_transport(session.transport)
        if participant is None:
            session.state = SessionState.CONNECTED
            session.participant_id = None
        else:
            session.state = _ROLE_STATES[participant.role]
            session.participant_id = participant.id

    def _dispatch(self, result: RoutingResult) -> None:
        for outbound in result.sends:
            try:
                outbound.transport.send(outbound.message)
            except Exception as e:
                # Stale entries are evicted by their own close event, not here
                debug(LogRecord(
                    LogEvent.SEND_DROPPED_CLOSED.value,
                    f"Send failed: {type(e).__name__}: {e}",
                    outbound.transport.connection_id,
                    {"type": outbound.message.get("type")},
                ))

        for source_id in result.started:
            self._schedule_history(self.history.record_start, source_id, LogEvent.HISTORY_START_RECORDED)
        for source_id in result.stopped:
            self._schedule_history(self.history.record_stop, source_id, LogEvent.HISTORY_STOP_RECORDED)

    def _schedule_history(self, write: Callable[[str], Awaitable[Any]], source_id: str, event: LogEvent) -> None:
        previous = self._history_tails.get(source_id)
        task = asyncio.create_task(self._write_history(write, source_id, event, previous))
        self._history_tails[source_id] = task
        self._history_tasks.add(task)
        task.add_done_callback(functools.partial(self._history_done, source_id))

    def _history_done(self, source_id: str, task: asyncio.Task) -> None:
        self._history_tasks.discard(task)
        if self._history_tails.get(source_id) is task:
            del self._history_tails[source_id]

    async def _write_history(
        self,
        write: Callable[[str], Awaitable[Any]],
        source_id: str,
        event: LogEvent,
        previous: Optional[asyncio.Task] = None,
    ) -> None:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            await write(source_id)
        except Exception as e:
            error(LogRecord(
                LogEvent.HISTORY_WRITE_FAILED.value,
                f"History write for {source_id} failed",
                data={"source_id": source_id},
            ), exc=e)
            return
        debug(LogRecord(event.value, f"Recorded {event.value} for {source_id}", data={"source_id": source_id}))


def create_coordinator(
    ice_mode: IceRoutingMode = IceRoutingMode.DIRECTED,
    history: Optional[HistoryRecorder] = None,
) -> SessionCoordinator:
    """Wire a registry, directory and router into a fresh coordinator."""
    registry = ConnectionRegistry()
    directory = SourceDirectory()
    router = MessageRouter(registry, directory, ice_mode)
    return SessionCoordinator(registry, directory, router, history or InMemoryHistoryRecorder())
