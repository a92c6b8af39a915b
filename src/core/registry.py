"""
Connection registry: the live transport of every identified participant.

Not thread-safe on its own; the session coordinator serialises all access
under its lock together with the source directory.
"""

import dataclasses
from typing import Dict, List, Optional

from core.transport import Transport
from models import Role
from utils.logging import debug, info, warning, LogRecord, LogEvent


@dataclasses.dataclass
class Participant:
    id: str
    role: Role
    transport: Transport


class ConnectionRegistry:
    """Participants keyed by ID, at most one entry per ID."""

    def __init__(self):
        self._entries: Dict[str, Participant] = {}

    def register(self, participant_id: str, role: Role, transport: Transport) -> Optional[Participant]:
        """
        Insert or replace the entry for ``participant_id``.

        A prior entry bound to another transport is a stale client: its
        transport is closed (best-effort) and the evicted participant is
        returned. Re-registering on the same transport only updates the role.
        """
        previous = self._entries.get(participant_id)
        self._entries[participant_id] = Participant(participant_id, role, transport)

        evicted = None
        if previous is not None and previous.transport is not transport:
            evicted = previous
            info(LogRecord(
                LogEvent.PARTICIPANT_EVICTED.value,
                f"Participant {participant_id} re-announced on a new connection, closing the old one",
                transport.connection_id,
                {
                    "participant_id": participant_id,
                    "role": role.value,
                    "old_connection_id": previous.transport.connection_id,
                },
            ))
            try:
                previous.transport.close()
            except Exception as e:
                warning(LogRecord(
                    LogEvent.TRANSPORT_CLOSE_FAILED.value,
                    f"Failed to close evicted transport for {participant_id}",
                    previous.transport.connection_id,
                ), exc=e)

        debug(LogRecord(
            LogEvent.PARTICIPANT_REGISTERED.value,
            f"Registered {role.value} {participant_id}",
            transport.connection_id,
            {"participant_id": participant_id, "role": role.value, "registry_size": len(self._entries)},
        ))
        return evicted

    def unregister(self, participant_id: str) -> Optional[Participant]:
        participant = self._entries.pop(participant_id, None)
        if participant is not None:
            self._log_unregistered(participant)
        return participant

    def unregister_by_transport(self, transport: Transport) -> Optional[Participant]:
        """Remove whichever entry currently owns ``transport``."""
        participant = self.lookup_by_transport(transport)
        if participant is not None:
            del self._entries[participant.id]
            self._log_unregistered(participant)
        return participant

    def lookup(self, participant_id: str) -> Optional[Participant]:
        return self._entries.get(participant_id)

    def lookup_by_transport(self, transport: Transport) -> Optional[Participant]:
        for participant in self._entries.values():
            if participant.transport is transport:
                return participant
        return None

    def participants(self, role: Optional[Role] = None) -> List[Participant]:
        """Snapshot in registration order, optionally filtered by role."""
        return [p for p in self._entries.values() if role is None or p.role == role]

    def count(self, role: Optional[Role] = None) -> int:
        return len(self.participants(role))

    def __contains__(self, participant_id: str) -> bool:
        return participant_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _log_unregistered(self, participant: Participant) -> None:
        debug(LogRecord(
            LogEvent.PARTICIPANT_UNREGISTERED.value,
            f"Unregistered {participant.role.value} {participant.id}",
            participant.transport.connection_id,
            {"participant_id": participant.id, "role": participant.role.value, "registry_size": len(self._entries)},
        ))
