"""
Core signaling relay.

This package contains the relay's state and routing logic:
- Connection registry and source directory
- Message router and session coordinator
- Transport abstraction and broadcast history recorder
"""

from .transport import Transport, WebSocketTransport
from .registry import ConnectionRegistry, Participant
from .directory import SourceDirectory
from .errors import SignalingError, MalformedMessageError, UnknownMessageTypeError
from .history import HistoryRecorder, InMemoryHistoryRecorder
from .router import IceRoutingMode, MessageRouter, Outbound, RoutingResult, decode_message, parse_message
from .coordinator import Session, SessionCoordinator, SessionState, create_coordinator

__all__ = [
    "Transport", "WebSocketTransport",
    "ConnectionRegistry", "Participant",
    "SourceDirectory",
    "SignalingError", "MalformedMessageError", "UnknownMessageTypeError",
    "HistoryRecorder", "InMemoryHistoryRecorder",
    "IceRoutingMode", "MessageRouter", "Outbound", "RoutingResult", "decode_message", "parse_message",
    "Session", "SessionCoordinator", "SessionState", "create_coordinator",
]
