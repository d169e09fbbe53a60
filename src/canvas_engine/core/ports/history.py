from typing import Protocol

from canvas_engine.core.store import FlatStore


class HistoryStore(Protocol):
    def push(self, snapshot: FlatStore) -> None: ...

    def undo(self, current: FlatStore) -> FlatStore | None: ...

    def redo(self, current: FlatStore) -> FlatStore | None: ...

    def clear(self) -> None: ...

    @property
    def can_undo(self) -> bool: ...

    @property
    def can_redo(self) -> bool: ...

    @property
    def depth(self) -> int: ...
