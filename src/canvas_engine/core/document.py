from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from canvas_engine.core.executor import clone_with_new_ids
from canvas_engine.core.history import History
from canvas_engine.core.instances import get_override_by_path, remove_override, resolve_instance, split_instance_path
from canvas_engine.core.mapping import generate_id
from canvas_engine.core.ports.history import HistoryStore
from canvas_engine.core.ports.layout import LayoutSolver
from canvas_engine.core.ports.text import TextMeasurer
from canvas_engine.core.store import FlatStore, attach, detach, insert_tree, remove_subtree
from canvas_engine.core.text import EstimatedTextMeasurer
from canvas_engine.core.tree import TreeCache
from canvas_engine.core.variables import VariableTable
from canvas_engine.models import SceneNode

logger = logging.getLogger(__name__)


class Document:
    """The primary store and everything that edits or reads it.

    All edits go through ``commit`` (or ``undo``/``redo``), which swap the
    store's indices wholesale under ``lock``; readers never see a partially
    applied edit.
    """

    def __init__(
        self,
        store: FlatStore | None = None,
        variables: VariableTable | None = None,
        history: HistoryStore | None = None,
        measurer: TextMeasurer | None = None,
        layout: LayoutSolver | None = None,
    ) -> None:
        self.store = store or FlatStore()
        self.variables = variables or VariableTable()
        self.history: HistoryStore = history or History()
        self.measurer: TextMeasurer = measurer or EstimatedTextMeasurer()
        self.layout = layout
        self.lock = threading.RLock()
        self._tree_cache = TreeCache()

    def tree(self) -> list[SceneNode]:
        with self.lock:
            return self._tree_cache.get(self.store)

    def working_copy(self) -> FlatStore:
        return self.store.copy()

    @contextmanager
    def editing(self) -> Iterator[FlatStore]:
        """Yield a working copy; commit it if the block exits cleanly."""
        with self.lock:
            working = self.working_copy()
            yield working
            self.commit(working)

    def commit(self, working: FlatStore) -> None:
        """Record one undo step for the current state, then swap ``working`` in."""
        with self.lock:
            self.history.push(self.store)
            self.store.replace_with(working)
            self._tree_cache.invalidate()

    def restore(self, store: FlatStore) -> None:
        """Replace the contents as a new baseline: no undo step, history cleared."""
        with self.lock:
            self.store.replace_with(store)
            self.history.clear()
            self._tree_cache.invalidate()

    def undo(self) -> bool:
        with self.lock:
            previous = self.history.undo(self.store)
            if previous is None:
                return False
            self.store.replace_with(previous)
            self._tree_cache.invalidate()
            return True

    def redo(self) -> bool:
        with self.lock:
            following = self.history.redo(self.store)
            if following is None:
                return False
            self.store.replace_with(following)
            self._tree_cache.invalidate()
            return True

    def detach_instance(self, instance_id: str) -> bool:
        """Turn an instance into a plain frame holding copies of its resolved children.

        The frame keeps the instance's id and position among its siblings.
        """
        with self.lock:
            resolved = resolve_instance(self.store, instance_id, self.measurer)
            if resolved is None:
                return False
            frame = resolved.to_record()
            frame["children"] = [clone_with_new_ids(child, generate_id)[0] for child in resolved.children or []]
            parent_id = self.store.parent_by_id.get(instance_id)
            with self.editing() as working:
                index = detach(working, instance_id)
                remove_subtree(working, instance_id)
                insert_tree(working, frame, parent_id)
                attach(working, instance_id, parent_id, index)
            logger.info("Detached instance %s", instance_id)
            return True

    def reset_descendant_override(self, path: str, prop: str | None = None) -> bool:
        """Drop the override (or one property of it) at ``instance/descendant/...``."""
        with self.lock:
            instance_id, segments = split_instance_path(path)
            record = self.store.get(instance_id)
            if record is None or record.get("type") != "ref" or not segments:
                return False
            overrides = record.get("descendants") or {}
            current = get_override_by_path(overrides, segments)
            if current is None or (prop is not None and prop not in current):
                return False
            descendants = remove_override(overrides, segments, prop)
            updated = {k: v for k, v in record.items() if k != "descendants"}
            if descendants:
                updated["descendants"] = descendants
            with self.editing() as working:
                working.nodes_by_id[instance_id] = updated
            return True

    def reset_slot_content(self, instance_id: str, slot_id: str) -> bool:
        """Put a slot back to the component's placeholder content."""
        with self.lock:
            record = self.store.get(instance_id)
            slots = (record or {}).get("slotContent") or {}
            if record is None or slot_id not in slots:
                return False
            remaining = {k: v for k, v in slots.items() if k != slot_id}
            updated = {k: v for k, v in record.items() if k != "slotContent"}
            if remaining:
                updated["slotContent"] = remaining
            with self.editing() as working:
                working.nodes_by_id[instance_id] = updated
            return True
