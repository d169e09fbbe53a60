"""Depth-limited serialization and the ``batch_get`` read tool."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from canvas_engine.core.instances import find_descendant_by_path, resolve_instance, split_instance_path
from canvas_engine.core.store import FlatStore

if TYPE_CHECKING:
    from canvas_engine.core.document import Document

TRUNCATED = "..."


def _with_resolved_paint(record: Mapping[str, Any], variable_lookup: Mapping[str, str] | None) -> dict[str, Any]:
    result = {k: v for k, v in record.items() if v is not None and k != "children"}
    if variable_lookup:
        for key in ("fill", "stroke"):
            binding = record.get(f"{key}Binding") or {}
            value = variable_lookup.get(binding.get("variableId", ""))
            if value:
                result[key] = value
    return result


def serialize_node(
    store: FlatStore,
    node_id: str,
    depth: int,
    variable_lookup: Mapping[str, str] | None = None,
) -> dict[str, Any] | None:
    """Plain data for ``node_id`` and its children down to ``depth`` levels.

    Children beyond the depth are replaced by the string ``"..."``.
    Returns ``None`` for an unknown id.
    """
    record = store.get(node_id)
    if record is None:
        return None
    result = _with_resolved_paint(record, variable_lookup)
    child_ids = store.children_by_id.get(node_id) or []
    if child_ids:
        if depth <= 0:
            result["children"] = TRUNCATED
        else:
            children = (serialize_node(store, cid, depth - 1, variable_lookup) for cid in child_ids)
            result["children"] = [child for child in children if child is not None]
    return result


def serialize_nested(
    node: Mapping[str, Any],
    depth: int,
    variable_lookup: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Same as ``serialize_node`` for a nested node (slot content, resolved instances)."""
    result = _with_resolved_paint(node, variable_lookup)
    children = node.get("children") or []
    if children:
        if depth <= 0:
            result["children"] = TRUNCATED
        else:
            result["children"] = [serialize_nested(_as_mapping(child), depth - 1, variable_lookup) for child in children]
    return result


def _as_mapping(node: Any) -> Mapping[str, Any]:
    return node.to_record() if hasattr(node, "to_record") else node


def find_in_nested(node: Mapping[str, Any], node_id: str) -> Mapping[str, Any] | None:
    if node.get("id") == node_id:
        return node
    for child in node.get("children") or []:
        found = find_in_nested(_as_mapping(child), node_id)
        if found is not None:
            return found
    return None


def _matches(record: Mapping[str, Any], pattern: Mapping[str, Any]) -> bool:
    if "type" in pattern and record.get("type") != pattern["type"]:
        return False
    if "reusable" in pattern and bool(record.get("reusable")) != bool(pattern["reusable"]):
        return False
    if "name" in pattern:
        try:
            if not re.search(str(pattern["name"]), str(record.get("name") or ""), re.IGNORECASE):
                return False
        except re.error:
            return False
    return True


def _search(store: FlatStore, start_ids: Iterable[str], patterns: list[Mapping[str, Any]], max_depth: int | None) -> list[str]:
    found: list[str] = []
    stack = [(node_id, 0) for node_id in reversed(list(start_ids))]
    while stack:
        node_id, level = stack.pop()
        record = store.get(node_id)
        if record is None:
            continue
        if any(_matches(record, pattern) for pattern in patterns):
            found.append(node_id)
        if max_depth is None or level < max_depth:
            stack.extend((cid, level + 1) for cid in reversed(store.children_by_id.get(node_id, [])))
    return found


def batch_get(
    document: Document,
    patterns: list[Mapping[str, Any]] | None = None,
    node_ids: list[str] | None = None,
    parent_id: str | None = None,
    read_depth: int = 1,
    search_depth: int | None = None,
    resolve_variables: bool = False,
) -> dict[str, Any]:
    """Search and read nodes.

    ``patterns`` match by ``type``, case-insensitive ``name`` regex and
    ``reusable``, searching under ``parent_id`` (or the whole document).
    ``node_ids`` are read directly; an ``instance/descendant`` id returns the
    resolved descendant of that instance. Without either, the top-level
    nodes are listed.
    """
    store = document.store
    lookup = document.variables.lookup() if resolve_variables else None
    results: list[dict[str, Any]] = []
    missing: list[str] = []
    seen: set[str] = set()

    def _add(serialized: dict[str, Any] | None, key: str) -> None:
        if serialized is None:
            missing.append(key)
        elif key not in seen:
            seen.add(key)
            results.append(serialized)

    if patterns:
        start = store.children_of(parent_id) if parent_id is None or parent_id in store else []
        for node_id in _search(store, start, patterns, search_depth):
            _add(serialize_node(store, node_id, read_depth, lookup), node_id)

    for requested in node_ids or []:
        if "/" in requested:
            _add(_read_instance_path(document, requested, read_depth, lookup), requested)
        else:
            _add(serialize_node(store, requested, read_depth, lookup), requested)

    if not patterns and not node_ids:
        for node_id in store.children_of(parent_id):
            _add(serialize_node(store, node_id, read_depth, lookup), node_id)

    payload: dict[str, Any] = {"nodes": results}
    if missing:
        payload["notFound"] = missing
    return payload


def _read_instance_path(
    document: Document,
    path: str,
    depth: int,
    lookup: Mapping[str, str] | None,
) -> dict[str, Any] | None:
    head, segments = split_instance_path(path)
    resolved = resolve_instance(document.store, head, document.measurer)
    if resolved is None:
        return None
    target = find_descendant_by_path(resolved.children or [], "/".join(segments))
    if target is None:
        return None
    return serialize_nested(target.to_record(), depth, lookup)
