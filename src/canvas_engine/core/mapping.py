"""Translate script node data into node records.

Scripts describe nodes in a compact, caller-friendly vocabulary; records in
the store use the document vocabulary. The mapping:

* ``type: "rectangle"`` becomes ``rect``;
* ``content`` becomes ``text``;
* ``ref`` becomes ``componentId``;
* ``layout: "horizontal" | "vertical"`` switches on auto layout, and
  ``padding`` / ``gap`` numbers expand into layout properties;
* ``width`` / ``height`` accept ``fill_container`` and ``fit_content``,
  optionally with a value in parentheses, and set the sizing mode;
* ``fill`` / ``stroke`` given as ``$name`` or ``{"variableId": ...}`` keep the
  binding and a snapshot of the value for the inherited theme;
* ``placeholder`` is dropped.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from canvas_engine.core.errors import ExecutionError
from canvas_engine.core.ports.text import TextMeasurer
from canvas_engine.core.ports.variables import VariableResolver
from canvas_engine.core.text import sync_text_dimensions
from canvas_engine.models import CONTAINER_TYPES, NODE_TYPES, SceneNode

NodeData = dict[str, Any]

TYPE_ALIASES = {"rectangle": "rect"}

_SIZING_RE = re.compile(r"^(fill_container|fit_content)(?:\((\d+(?:\.\d+)?)\))?$")
_PAINT_KEYS = ("fill", "stroke")
_DROPPED_KEYS = frozenset({"placeholder"})


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


def map_node_type(value: Any) -> str:
    name = str(value)
    return TYPE_ALIASES.get(name, name)


def parse_sizing_value(value: Any) -> tuple[str, float | None] | None:
    """``"fit_content(240)"`` -> ``("fit_content", 240.0)``; plain numbers -> ``None``."""
    if not isinstance(value, str):
        return None
    match = _SIZING_RE.match(value.strip())
    if match is None:
        return None
    return match.group(1), float(match.group(2)) if match.group(2) else None


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _map_paint(key: str, value: Any, theme: str, variables: VariableResolver | None) -> dict[str, Any]:
    if variables is not None:
        if isinstance(value, str):
            resolved = variables.resolve_reference(value, theme)
            if resolved is not None:
                variable_id, snapshot = resolved
                return {f"{key}Binding": {"variableId": variable_id}, key: snapshot}
        elif isinstance(value, Mapping) and isinstance(value.get("variableId"), str):
            snapshot = variables.resolve_id(value["variableId"], theme)
            if snapshot is not None:
                return {f"{key}Binding": {"variableId": value["variableId"]}, key: snapshot}
    return {key: value}


def map_node_data(
    data: Mapping[str, Any],
    theme: str,
    variables: VariableResolver | None = None,
    existing: Mapping[str, Any] | None = None,
) -> tuple[NodeData, list[Any] | None]:
    """Map script data to record properties.

    Returns ``(properties, children)``; embedded ``children`` are handed back
    separately for recursive creation. When ``existing`` is given, layout and
    sizing shorthands merge into the existing record's values.
    """
    result: NodeData = {}
    layout: dict[str, Any] = {}
    sizing: dict[str, Any] = {}
    children: list[Any] | None = None

    for key, value in data.items():
        if key in _DROPPED_KEYS:
            continue
        if key == "type":
            result["type"] = map_node_type(value)
        elif key == "content":
            result["text"] = str(value)
        elif key == "ref":
            result["componentId"] = str(value)
        elif key in _PAINT_KEYS:
            result.update(_map_paint(key, value, theme, variables))
        elif key == "layout":
            if isinstance(value, str):
                layout.update(autoLayout=True, flexDirection="row" if value == "horizontal" else "column")
            elif isinstance(value, Mapping):
                layout.update(value)
        elif key == "padding":
            if _is_number(value):
                layout.update(paddingTop=value, paddingRight=value, paddingBottom=value, paddingLeft=value)
        elif key == "gap":
            if _is_number(value):
                layout["gap"] = value
        elif key in ("width", "height"):
            parsed = parse_sizing_value(value)
            if parsed is not None:
                mode, amount = parsed
                sizing[f"{key}Mode"] = mode
                if amount is not None:
                    result[key] = amount
            elif _is_number(value):
                result[key] = value
        elif key == "children":
            if isinstance(value, list):
                children = value
        else:
            result[key] = value

    if layout:
        base = dict((existing or {}).get("layout") or {})
        result["layout"] = {**base, **layout}
    if sizing:
        base = dict((existing or {}).get("sizing") or {})
        result["sizing"] = {**base, **sizing}
    return result, children


def map_descendant_override(
    data: Mapping[str, Any],
    theme: str,
    variables: VariableResolver | None = None,
) -> NodeData:
    """Map an override patch; only ``content`` and paint shorthands apply here."""
    result: NodeData = {}
    for key, value in data.items():
        if key in ("ref", "placeholder"):
            continue
        if key == "content":
            result["text"] = str(value)
        elif key in _PAINT_KEYS:
            result.update(_map_paint(key, value, theme, variables))
        else:
            result[key] = value
    return result


def create_node(
    data: Mapping[str, Any],
    theme: str,
    variables: VariableResolver | None = None,
    measurer: TextMeasurer | None = None,
    id_factory: Callable[[], str] = generate_id,
) -> NodeData:
    """Build a complete nested node from script data.

    Defaults to a 100x100 frame at the origin. A caller-supplied ``id`` is kept.
    Raises ``ExecutionError`` when the result is not a valid node.
    """
    node = _build(data, theme, variables, measurer, id_factory)
    try:
        SceneNode.model_validate(node)
    except ValidationError as exc:
        raise ExecutionError(f"Invalid node data: {exc.errors()[0]['msg']}") from exc
    return node


def _build(
    data: Mapping[str, Any],
    theme: str,
    variables: VariableResolver | None,
    measurer: TextMeasurer | None,
    id_factory: Callable[[], str],
) -> NodeData:
    if not isinstance(data, Mapping):
        raise ExecutionError(f"Node data must be an object, got {type(data).__name__}")
    node_type = map_node_type(data.get("type", "frame"))
    if node_type not in NODE_TYPES:
        raise ExecutionError(f'Unknown node type: "{node_type}"')

    mapped, children = map_node_data(data, theme, variables)
    node: NodeData = {"id": id_factory(), "type": node_type, "x": 0, "y": 0, "width": 100, "height": 100, **mapped}
    if not isinstance(node["id"], str) or not node["id"]:
        raise ExecutionError("Node id must be a non-empty string")

    if node_type in CONTAINER_TYPES:
        node["children"] = [_build(child, theme, variables, measurer, id_factory) for child in children or []]
    elif node_type == "text":
        node.setdefault("text", "")
        if measurer is not None:
            node = sync_text_dimensions(node, measurer)
    return node
