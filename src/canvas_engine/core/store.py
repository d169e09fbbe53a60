"""Flat, id-indexed scene store.

Nodes never hold references to their parent or children. Relationships live
in three side indices keyed by node id, which keeps a structural copy of the
whole store cheap: records are treated as immutable values and replaced on
every edit, so copying the index containers is enough to isolate a working
copy from the primary store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from canvas_engine.core.errors import ExecutionError
from canvas_engine.models import CONTAINER_TYPES, SceneNode

NodeRecord = dict[str, Any]


@dataclass
class FlatStore:
    nodes_by_id: dict[str, NodeRecord] = field(default_factory=dict)
    parent_by_id: dict[str, str | None] = field(default_factory=dict)
    children_by_id: dict[str, list[str]] = field(default_factory=dict)
    root_ids: list[str] = field(default_factory=list)

    def copy(self) -> FlatStore:
        return FlatStore(
            nodes_by_id=dict(self.nodes_by_id),
            parent_by_id=dict(self.parent_by_id),
            children_by_id={k: list(v) for k, v in self.children_by_id.items()},
            root_ids=list(self.root_ids),
        )

    def replace_with(self, other: FlatStore) -> None:
        """Swap in all four indices of ``other`` at once."""
        self.nodes_by_id, self.parent_by_id, self.children_by_id, self.root_ids = (
            other.nodes_by_id,
            other.parent_by_id,
            other.children_by_id,
            other.root_ids,
        )

    def get(self, node_id: str) -> NodeRecord | None:
        return self.nodes_by_id.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes_by_id

    def children_of(self, node_id: str | None) -> list[str]:
        if node_id is None:
            return self.root_ids
        return self.children_by_id.get(node_id, [])

    @classmethod
    def from_tree(cls, nodes: Iterable[Mapping[str, Any] | SceneNode]) -> FlatStore:
        store = cls()
        for node in nodes:
            node_id = insert_tree(store, node, None)
            store.root_ids.append(node_id)
        return store

    def to_tree(self) -> list[NodeRecord]:
        return [_nest(self, node_id) for node_id in self.root_ids if node_id in self.nodes_by_id]


def _nest(store: FlatStore, node_id: str) -> NodeRecord:
    record = dict(store.nodes_by_id[node_id])
    if record.get("type") in CONTAINER_TYPES:
        record["children"] = [
            _nest(store, cid) for cid in store.children_by_id.get(node_id, []) if cid in store.nodes_by_id
        ]
    return record


def is_container(record: Mapping[str, Any] | None) -> bool:
    return record is not None and record.get("type") in CONTAINER_TYPES


def to_flat_record(node: Mapping[str, Any] | SceneNode) -> NodeRecord:
    """Strip embedded children from a nested node."""
    data = node.to_record() if isinstance(node, SceneNode) else dict(node)
    data.pop("children", None)
    return data


def insert_tree(store: FlatStore, node: Mapping[str, Any] | SceneNode, parent_id: str | None) -> str:
    """Write ``node`` and every nested descendant into the indices.

    The owner's child list (or ``root_ids``) is left alone; use ``attach``.
    Returns the id of the inserted root.
    """
    data = node.to_record() if isinstance(node, SceneNode) else dict(node)
    node_id = data.get("id")
    if not isinstance(node_id, str) or not node_id:
        raise ExecutionError("Node is missing an id")
    if node_id in store.nodes_by_id:
        raise ExecutionError(f'Duplicate node id: "{node_id}"')

    children = data.pop("children", None)
    store.nodes_by_id[node_id] = data
    store.parent_by_id[node_id] = parent_id
    if data.get("type") in CONTAINER_TYPES:
        child_ids: list[str] = []
        for child in children or []:
            child_ids.append(insert_tree(store, child, node_id))
        store.children_by_id[node_id] = child_ids
    return node_id


def collect_descendant_ids(store: FlatStore, node_id: str) -> list[str]:
    result: list[str] = []
    stack = list(store.children_by_id.get(node_id, []))
    while stack:
        current = stack.pop()
        result.append(current)
        stack.extend(store.children_by_id.get(current, []))
    return result


def is_descendant(store: FlatStore, node_id: str, ancestor_id: str) -> bool:
    seen: set[str] = set()
    current = store.parent_by_id.get(node_id)
    while current is not None and current not in seen:
        if current == ancestor_id:
            return True
        seen.add(current)
        current = store.parent_by_id.get(current)
    return False


def detach(store: FlatStore, node_id: str) -> int | None:
    """Remove ``node_id`` from its owner's list; return its former index."""
    parent_id = store.parent_by_id.get(node_id)
    siblings = store.root_ids if parent_id is None else store.children_by_id.get(parent_id, [])
    try:
        index = siblings.index(node_id)
    except ValueError:
        return None
    # Lists may be shared with the primary store, so rebuild instead of mutating.
    updated = siblings[:index] + siblings[index + 1 :]
    if parent_id is None:
        store.root_ids = updated
    else:
        store.children_by_id[parent_id] = updated
    return index


def attach(store: FlatStore, node_id: str, parent_id: str | None, index: int | None = None) -> None:
    """Place ``node_id`` into ``parent_id``'s list (``None`` = root) at ``index``.

    A negative ``index`` counts from the end, as ``list.insert`` does: ``-1`` lands
    before the current last sibling.
    """
    siblings = list(store.root_ids if parent_id is None else store.children_by_id.get(parent_id, []))
    position = len(siblings) if index is None else min(index, len(siblings))
    siblings.insert(position, node_id)
    if parent_id is None:
        store.root_ids = siblings
    else:
        store.children_by_id[parent_id] = siblings
    store.parent_by_id[node_id] = parent_id


def remove_subtree(store: FlatStore, node_id: str) -> None:
    """Detach ``node_id`` and purge it and all descendants from every index."""
    detach(store, node_id)
    for doomed in [*collect_descendant_ids(store, node_id), node_id]:
        store.nodes_by_id.pop(doomed, None)
        store.parent_by_id.pop(doomed, None)
        store.children_by_id.pop(doomed, None)


def integrity_errors(store: FlatStore) -> list[str]:
    """List referential-integrity violations; an empty list means consistent.

    A ``ref`` whose component is missing is not a violation.
    """
    errors: list[str] = []
    owners: dict[str, str | None] = {}

    for node_id in store.root_ids:
        if node_id in owners:
            errors.append(f"{node_id} listed twice at root")
        owners[node_id] = None
        if store.parent_by_id.get(node_id, "<missing>") is not None:
            errors.append(f"root {node_id} has a parent entry")

    for parent_id, child_ids in store.children_by_id.items():
        if parent_id not in store.nodes_by_id:
            errors.append(f"children listed for unknown node {parent_id}")
        for child_id in child_ids:
            if child_id in owners:
                errors.append(f"{child_id} owned by both {owners[child_id]} and {parent_id}")
            owners[child_id] = parent_id
            if store.parent_by_id.get(child_id) != parent_id:
                errors.append(f"{child_id} does not point back to {parent_id}")

    for node_id in owners:
        if node_id not in store.nodes_by_id:
            errors.append(f"{node_id} is referenced but has no record")

    for node_id in store.nodes_by_id:
        if node_id not in owners:
            errors.append(f"{node_id} is unreachable")
        elif is_descendant(store, node_id, node_id):
            errors.append(f"{node_id} is its own ancestor")

    return errors
