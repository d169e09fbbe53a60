from __future__ import annotations

import logging

from canvas_engine.core.store import FlatStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class History:
    """Bounded undo/redo stacks of whole-store snapshots.

    Implements the ``HistoryStore`` protocol. Snapshots are structural copies,
    so they stay valid as long as records are replaced rather than mutated.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError(f"History limit must be positive, got {limit}")
        self.limit = limit
        self._past: list[FlatStore] = []
        self._future: list[FlatStore] = []

    def push(self, snapshot: FlatStore) -> None:
        """Record the state before an edit; a new edit invalidates redo."""
        self._past.append(snapshot.copy())
        if len(self._past) > self.limit:
            del self._past[0]
        self._future.clear()

    def undo(self, current: FlatStore) -> FlatStore | None:
        if not self._past:
            return None
        self._future.append(current.copy())
        logger.debug("Undo (%d left)", len(self._past) - 1)
        return self._past.pop()

    def redo(self, current: FlatStore) -> FlatStore | None:
        if not self._future:
            return None
        self._past.append(current.copy())
        logger.debug("Redo (%d left)", len(self._future) - 1)
        return self._future.pop()

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def depth(self) -> int:
        return len(self._past)

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
