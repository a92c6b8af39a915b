"""Source directory: the sources that can currently be joined."""

from typing import Dict, List

from utils.logging import info, LogRecord, LogEvent


class SourceDirectory:
    """Insertion-ordered set of live source IDs."""

    def __init__(self):
        # dict keeps insertion order, values unused
        self._live: Dict[str, None] = {}

    def mark_live(self, source_id: str) -> bool:
        """Add ``source_id``. Returns True if it was not already live."""
        if source_id in self._live:
            return False
        self._live[source_id] = None
        info(LogRecord(
            LogEvent.SOURCE_ONLINE.value,
            f"Source {source_id} is live",
            data={"source_id": source_id, "live_sources": len(self._live)},
        ))
        return True

    def mark_stopped(self, source_id: str) -> bool:
        """
        Remove ``source_id``. Returns True if it was live, in which case the
        caller owes every receiver a ``source-offline`` notice.
        """
        if source_id not in self._live:
            return False
        del self._live[source_id]
        info(LogRecord(
            LogEvent.SOURCE_OFFLINE.value,
            f"Source {source_id} stopped",
            data={"source_id": source_id, "live_sources": len(self._live)},
        ))
        return True

    def is_live(self, source_id: str) -> bool:
        return source_id in self._live

    def list_live(self) -> List[str]:
        return list(self._live)

    def __len__(self) -> int:
        return len(self._live)
