from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .errors import HistoryIndexError, NothingToRedoError, NothingToUndoError

DEFAULT_HISTORY_LIMIT = 50
PREVIEW_CHARS = 50

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class HistoryEntry:
    source_text: str
    timestamp: datetime


class HistoryStack:
    """Linear undo/redo log over source snapshots.

    Pushing after an undo drops the redo branch, and the oldest entry is
    evicted once the stack grows past ``limit``.
    """

    def __init__(
        self,
        seed_text: Optional[str] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Optional[Clock] = None,
    ) -> None:
        if limit < 1:
            raise ValueError(f"History limit must be positive: {limit}")
        self.limit = limit
        self._clock = clock or _now_utc
        self._entries: List[HistoryEntry] = []
        self._cursor = 0
        if seed_text is not None:
            self.reset(seed_text)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    @property
    def current(self) -> Optional[HistoryEntry]:
        if not self._entries:
            return None
        return self._entries[self._cursor]

    @property
    def can_undo(self) -> bool:
        return bool(self._entries) and self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return bool(self._entries) and self._cursor < len(self._entries) - 1

    def push(self, text: str) -> HistoryEntry:
        if self._entries and self._cursor < len(self._entries) - 1:
            del self._entries[self._cursor + 1:]
        entry = HistoryEntry(source_text=text, timestamp=self._clock())
        self._entries.append(entry)
        if len(self._entries) > self.limit:
            del self._entries[0]
        self._cursor = len(self._entries) - 1
        return entry

    def undo(self) -> HistoryEntry:
        if not self.can_undo:
            raise NothingToUndoError()
        self._cursor -= 1
        return self._entries[self._cursor]

    def redo(self) -> HistoryEntry:
        if not self.can_redo:
            raise NothingToRedoError()
        self._cursor += 1
        return self._entries[self._cursor]

    def reset(self, seed_text: str) -> HistoryEntry:
        entry = HistoryEntry(source_text=seed_text, timestamp=self._clock())
        self._entries = [entry]
        self._cursor = 0
        return entry

    def restore(self, index: int) -> HistoryEntry:
        if not 0 <= index < len(self._entries):
            raise HistoryIndexError(index, len(self._entries))
        self._cursor = index
        return self._entries[index]

    def versions(self) -> List[Dict[str, object]]:
        """Rows for a version browser, oldest first."""
        total = len(self._entries)
        rows: List[Dict[str, object]] = []
        for index, entry in enumerate(self._entries):
            rows.append(
                {
                    "index": index,
                    "label": f"Version {total - index}",
                    "timestamp": entry.timestamp,
                    "preview": entry.source_text[:PREVIEW_CHARS],
                    "current": index == self._cursor,
                }
            )
        return rows


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)
