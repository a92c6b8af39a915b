"""
Broadcast history recorder.

The relay only talks to history through ``HistoryRecorder``: one record per
broadcast session, opened when a source goes live and closed when it stops.
It is never consulted while routing; the coordinator schedules writes outside
its lock and the query endpoints read from it.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List

from models import BroadcastRecord


class HistoryRecorder(ABC):
    @abstractmethod
    async def record_start(self, source_id: str) -> BroadcastRecord:
        ...

    @abstractmethod
    async def record_stop(self, source_id: str) -> None:
        ...

    @abstractmethod
    async def list_active_records(self) -> List[BroadcastRecord]:
        ...

    async def list_active(self) -> List[str]:
        return [record.source_id for record in await self.list_active_records()]


class InMemoryHistoryRecorder(HistoryRecorder):
    """Keeps broadcast records in process memory; lost on restart."""

    def __init__(self):
        self._records: Dict[int, BroadcastRecord] = {}
        self._next_id = 1

    async def record_start(self, source_id: str) -> BroadcastRecord:
        record = BroadcastRecord(
            id=self._next_id,
            source_id=source_id,
            started_at=datetime.now(timezone.utc),
        )
        self._records[record.id] = record
        self._next_id += 1
        return record

    async def record_stop(self, source_id: str) -> None:
        # Close the oldest open session for this source
        for record in self._records.values():
            if record.source_id == source_id and record.is_active:
                record.is_active = False
                record.ended_at = datetime.now(timezone.utc)
                return

    async def list_active_records(self) -> List[BroadcastRecord]:
        return [record for record in self._records.values() if record.is_active]
