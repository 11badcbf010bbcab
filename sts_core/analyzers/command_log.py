"""
Command Log - the history panel's data.

Every dispatched command, successful or not, leaves exactly one entry here.
The log is capped; once full, the oldest entry is dropped first.
"""

from collections import deque
from typing import Dict, List, Optional

from ..commands.schema import CommandLogEntry


class CommandLog:
    """Bounded FIFO of CommandLogEntry, oldest first."""

    def __init__(self, max_entries: int = 50):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: deque = deque(maxlen=max_entries)

    def record(self, entry: CommandLogEntry) -> CommandLogEntry:
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> List[CommandLogEntry]:
        return list(self._entries)

    @property
    def last(self) -> Optional[CommandLogEntry]:
        return self._entries[-1] if self._entries else None

    def recent(self, n: int = 5) -> List[CommandLogEntry]:
        """Newest n entries, newest first (history panel order)."""
        return list(reversed(self._entries))[:n]

    def summary(self) -> Dict[str, int]:
        ok = sum(1 for e in self._entries if e.success)
        return {"total": len(self._entries), "succeeded": ok, "failed": len(self._entries) - ok}

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))
