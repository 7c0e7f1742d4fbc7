"""Bounded linear undo/redo history of full graph snapshots."""

import threading
from typing import List, Optional

from .graph import GraphSnapshot, GraphState


class HistoryStore:
    """Snapshots plus a cursor.

    record() truncates any redo future, appends, and drops the oldest entry
    when the bound is exceeded. undo()/redo() only move the cursor; they never
    record.
    """

    def __init__(self, initial: GraphState, max_size: int = 50):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._lock = threading.RLock()
        self._snapshots: List[GraphSnapshot] = [initial.snapshot()]
        self._cursor = 0

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

    def current(self) -> GraphSnapshot:
        with self._lock:
            return self._snapshots[self._cursor]

    def snapshots(self) -> List[GraphSnapshot]:
        with self._lock:
            return list(self._snapshots)

    def record(self, state: GraphState) -> None:
        """Record the post-mutation state."""
        with self._lock:
            del self._snapshots[self._cursor + 1:]
            self._snapshots.append(state.snapshot())
            if len(self._snapshots) > self.max_size:
                del self._snapshots[0]
            self._cursor = len(self._snapshots) - 1

    def can_undo(self) -> bool:
        with self._lock:
            return self._cursor > 0

    def can_redo(self) -> bool:
        with self._lock:
            return self._cursor < len(self._snapshots) - 1

    def undo(self) -> Optional[GraphState]:
        """Step back; None at the oldest entry."""
        with self._lock:
            if self._cursor == 0:
                return None
            self._cursor -= 1
            return self._snapshots[self._cursor].restore()

    def redo(self) -> Optional[GraphState]:
        """Step forward; None at the newest entry."""
        with self._lock:
            if self._cursor >= len(self._snapshots) - 1:
                return None
            self._cursor += 1
            return self._snapshots[self._cursor].restore()

    def reset(self, state: GraphState) -> None:
        """Forget everything; used when the active collection changes."""
        with self._lock:
            self._snapshots = [state.snapshot()]
            self._cursor = 0
