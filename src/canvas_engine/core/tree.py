from __future__ import annotations

from collections.abc import Iterable

from canvas_engine.core.store import FlatStore
from canvas_engine.models import CONTAINER_TYPES, SceneNode


def build_tree(store: FlatStore, ids: Iterable[str]) -> list[SceneNode]:
    """Materialise nested nodes for ``ids`` by walking ``children_by_id``.

    Ids without a record are skipped rather than raising, so a store caught
    between edits still projects to a usable tree.
    """
    result: list[SceneNode] = []
    for node_id in ids:
        node = _build_node(store, node_id, set())
        if node is not None:
            result.append(node)
    return result


def _build_node(store: FlatStore, node_id: str, ancestors: set[str]) -> SceneNode | None:
    record = store.nodes_by_id.get(node_id)
    if record is None or node_id in ancestors:
        return None
    data = {k: v for k, v in record.items() if k != "children"}
    if record.get("type") in CONTAINER_TYPES:
        path = ancestors | {node_id}
        children = (_build_node(store, cid, path) for cid in store.children_by_id.get(node_id, []))
        data["children"] = [child for child in children if child is not None]
    return SceneNode.model_validate(data)


class TreeCache:
    """Memoised ``build_tree(root_ids)`` projection, dropped on every commit."""

    def __init__(self) -> None:
        self._tree: list[SceneNode] | None = None

    def get(self, store: FlatStore) -> list[SceneNode]:
        if self._tree is None:
            self._tree = build_tree(store, store.root_ids)
        return self._tree

    def invalidate(self) -> None:
        self._tree = None

    @property
    def is_cached(self) -> bool:
        return self._tree is not None
