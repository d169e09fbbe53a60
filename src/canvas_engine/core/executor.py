"""Apply parsed operations to an execution context's working copy.

Every function here reads and writes only ``ctx.store``, which is a private
structural copy of the primary store. Records are replaced, never mutated in
place, because the copy shares them with the primary store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from canvas_engine.core.errors import ExecutionError
from canvas_engine.core.instances import find_component, prepare_instance, set_override_by_path, split_instance_path
from canvas_engine.core.mapping import (
    NodeData,
    create_node,
    generate_id,
    map_descendant_override,
    map_node_data,
)
from canvas_engine.core.ports.layout import LayoutSolver
from canvas_engine.core.ports.text import TextMeasurer
from canvas_engine.core.ports.variables import VariableResolver
from canvas_engine.core.script import (
    BindingArg,
    ConcatArg,
    JsonArg,
    LiteralArg,
    NumberArg,
    ParsedArg,
    ParsedOperation,
    StringArg,
)
from canvas_engine.core.serialize import find_in_nested, serialize_nested, serialize_node
from canvas_engine.core.store import (
    FlatStore,
    attach,
    detach,
    insert_tree,
    is_container,
    is_descendant,
    remove_subtree,
)
from canvas_engine.core.text import affects_text_measure, sync_text_dimensions
from canvas_engine.core.tree import build_tree
from canvas_engine.models import SceneNode

logger = logging.getLogger(__name__)

DOCUMENT_BINDING = "__document__"
CREATED_NODE_DEPTH = 2
DEFAULT_COPY_PADDING = 50
COPY_DIRECTIONS = ("right", "left", "top", "bottom")
PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400?text={text}"

_COPIED_COMPONENT_PROPS = ("fill", "stroke", "strokeWidth", "visible", "enabled")


def _initial_bindings() -> dict[str, str]:
    return {"document": DOCUMENT_BINDING, DOCUMENT_BINDING: DOCUMENT_BINDING}


@dataclass
class ExecutionContext:
    """Per-batch state: the working copy plus script-local bookkeeping."""

    store: FlatStore
    variables: VariableResolver | None = None
    measurer: TextMeasurer | None = None
    layout: LayoutSolver | None = None
    default_theme: str = "light"
    id_factory: Callable[[], str] = generate_id
    bindings: dict[str, str] = field(default_factory=_initial_bindings)
    created_node_ids: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    # Nodes created inside slot content live in their instance's record, not in the indices.
    slot_residents: dict[str, str] = field(default_factory=dict)

    def bind(self, op: ParsedOperation, node_id: str) -> None:
        if op.binding:
            self.bindings[op.binding] = node_id

    def record_created(self, op: ParsedOperation, node_id: str) -> None:
        self.created_node_ids.append(node_id)
        self.bind(op, node_id)


def resolve_inherited_theme(store: FlatStore, parent_id: str | None, default: str) -> str:
    """The ``themeOverride`` of the nearest enclosing frame, else ``default``."""
    seen: set[str] = set()
    current = parent_id
    while current is not None and current not in seen:
        seen.add(current)
        record = store.get(current) or {}
        if record.get("type") == "frame" and record.get("themeOverride"):
            return str(record["themeOverride"])
        current = store.parent_by_id.get(current)
    return default


def _theme_for(ctx: ExecutionContext, parent_id: str | None) -> str:
    default = ctx.variables.active_theme if ctx.variables is not None else ctx.default_theme
    return resolve_inherited_theme(ctx.store, parent_id, default)


# -- argument resolution ----------------------------------------------------


def resolve_arg(arg: ParsedArg, ctx: ExecutionContext) -> str:
    """Resolve an argument that names a node (or a plain string value)."""
    if isinstance(arg, StringArg):
        return arg.value
    if isinstance(arg, BindingArg):
        if arg.name not in ctx.bindings:
            raise ExecutionError(f'Unresolved binding: "{arg.name}"')
        return ctx.bindings[arg.name]
    if isinstance(arg, ConcatArg):
        if arg.name not in ctx.bindings:
            raise ExecutionError(f'Unresolved binding: "{arg.name}"')
        return ctx.bindings[arg.name] + arg.suffix
    if isinstance(arg, NumberArg):
        return str(arg.value)
    if isinstance(arg, LiteralArg):
        raise ExecutionError(f"Expected a node reference, got {arg.word}")
    raise ExecutionError("Expected a node reference, got structured data")


def resolve_object(arg: ParsedArg) -> dict[str, Any]:
    if isinstance(arg, JsonArg) and isinstance(arg.value, dict):
        return arg.value
    kind = "array" if isinstance(arg, JsonArg) else type(arg).__name__.removesuffix("Arg").lower()
    raise ExecutionError(f"Expected an object argument, got {kind}")


def resolve_parent(arg: ParsedArg, ctx: ExecutionContext) -> str | None:
    """Resolve a parent argument; ``None`` means the document root."""
    if isinstance(arg, LiteralArg) and arg.value is None:
        return None
    resolved = resolve_arg(arg, ctx)
    if resolved == DOCUMENT_BINDING:
        return None
    head = resolved.split("/", 1)[0]
    record = ctx.store.get(head)
    if record is None and "/" not in resolved:
        record = _slot_resident(ctx, resolved)
    if record is None:
        raise ExecutionError(f'Parent node not found: "{resolved}"')
    if "/" in resolved:
        if record.get("type") != "ref":
            raise ExecutionError(f'Node "{head}" is not a ref node (type: {record.get("type")})')
    elif not is_container(record):
        raise ExecutionError(f'Parent node "{resolved}" is not a container (type: {record.get("type")})')
    return resolved


def _require_args(op: ParsedOperation, count: int, usage: str) -> None:
    if len(op.args) < count:
        raise ExecutionError(f"{op.op}() requires {usage}")


def _require_instance(ctx: ExecutionContext, path: str) -> tuple[str, list[str], dict[str, Any]]:
    head, segments = split_instance_path(path)
    record = ctx.store.get(head)
    if record is None:
        raise ExecutionError(f'Instance node not found: "{head}"')
    if record.get("type") != "ref":
        raise ExecutionError(f'Node "{head}" is not a ref node (type: {record.get("type")})')
    if not segments:
        raise ExecutionError(f'Instance path "{path}" names no descendant')
    return head, segments, record


def _validated(record: dict[str, Any]) -> dict[str, Any]:
    try:
        SceneNode.model_validate(record)
    except ValidationError as exc:
        raise ExecutionError(f"Invalid node data: {exc.errors()[0]['msg']}") from exc
    return record


# -- placement --------------------------------------------------------------


def apply_ref_defaults(node: NodeData, data: Mapping[str, Any], store: FlatStore) -> NodeData:
    """Fill a new instance's size and sizing from its component when not given."""
    if node.get("type") != "ref":
        return node
    component_id = node.get("componentId")
    component = store.get(component_id) if component_id else None
    if component is None or component.get("type") != "frame" or not component.get("reusable"):
        raise ExecutionError(f'Component not found: "{component_id}"')
    defaults = {key: component.get(key) for key in ("width", "height", "sizing") if key not in data}
    return {**node, **{k: v for k, v in defaults.items() if v is not None}}


def _fit_instance_size(ctx: ExecutionContext, node_id: str) -> None:
    """Size a placed instance to its content when its sizing asks for ``fit_content``."""
    record = ctx.store.get(node_id)
    if ctx.layout is None or record is None or record.get("type") != "ref":
        return
    prepared = prepare_instance(ctx.store, record, ctx.layout, ctx.measurer)
    if prepared is None:
        return
    size = {"width": prepared.effective_width, "height": prepared.effective_height}
    if any(record.get(key) != value for key, value in size.items()):
        ctx.store.nodes_by_id[node_id] = {**record, **size}


def _slot_placeholder(store: FlatStore, instance: Mapping[str, Any], slot_id: str) -> dict[str, Any]:
    component = find_component(store, instance.get("componentId"))
    if component is None:
        raise ExecutionError(f'Component not found: "{instance.get("componentId")}"')
    placeholder = find_in_nested(component.to_record(), slot_id)
    if placeholder is None:
        raise ExecutionError(f'Slot "{slot_id}" not found in component "{component.id}"')
    if placeholder.get("type") not in ("frame", "group"):
        raise ExecutionError(f'Slot "{slot_id}" is not a container')
    # The placeholder's own children stay as the substitution's starting content.
    return {**placeholder, "children": list(placeholder.get("children") or [])}


def _check_unused_id(ctx: ExecutionContext, node_id: str) -> None:
    if node_id in ctx.store or _locate_slot_resident(ctx, node_id) is not None:
        raise ExecutionError(f'Duplicate node id: "{node_id}"')


def _place_in_slot(ctx: ExecutionContext, path: str, node: NodeData) -> str:
    head, segments, instance = _require_instance(ctx, path)
    _check_unused_id(ctx, node["id"])
    slot_id = segments[-1]
    slots = dict(instance.get("slotContent") or {})
    slot = slots.get(slot_id) or _slot_placeholder(ctx.store, instance, slot_id)
    slots[slot_id] = {**slot, "children": [*(slot.get("children") or []), node]}
    ctx.store.nodes_by_id[head] = {**instance, "slotContent": slots}
    ctx.slot_residents[node["id"]] = head
    return node["id"]


def _place_in_resident(ctx: ExecutionContext, parent: str, node: NodeData) -> str:
    _check_unused_id(ctx, node["id"])

    def _append(record: NodeData) -> NodeData:
        return {**record, "children": [*(record.get("children") or []), node]}

    instance_id = _edit_slot_resident(ctx, parent, _append)
    ctx.slot_residents[node["id"]] = instance_id
    return node["id"]


def _place(ctx: ExecutionContext, parent: str | None, node: NodeData) -> str:
    if parent is not None and "/" in parent:
        return _place_in_slot(ctx, parent, node)
    if parent is not None and parent not in ctx.store:
        return _place_in_resident(ctx, parent, node)
    node_id = insert_tree(ctx.store, node, parent)
    attach(ctx.store, node_id, parent)
    return node_id


def _parent_record_id(ctx: ExecutionContext, parent: str | None) -> str | None:
    """The store record a new child's theme is inherited through."""
    if not parent:
        return None
    head = parent.split("/", 1)[0]
    if head not in ctx.store:
        return ctx.slot_residents.get(head)
    return head


# -- slot residents ---------------------------------------------------------
#
# Nodes placed into an instance's slot live inside that instance's
# ``slotContent`` rather than in the indices. They are still addressable by id
# so later lines can insert into, update, replace, delete or copy them.


def _locate_slot_resident(
    ctx: ExecutionContext, node_id: str, instance_id: str | None = None
) -> tuple[str, str] | None:
    """Find ``(instance_id, slot_id)`` whose substituted content holds ``node_id``.

    Slot content seeded from a placeholder repeats component ids, so the
    instance that last received ``node_id`` is searched first.
    """
    if instance_id is not None:
        candidates = [instance_id]
    else:
        candidates = [nid for nid, record in ctx.store.nodes_by_id.items() if record.get("slotContent")]
        known = ctx.slot_residents.get(node_id)
        if known in candidates:
            candidates.remove(known)
            candidates.insert(0, known)
    for candidate in candidates:
        record = ctx.store.get(candidate) or {}
        for slot_id, slot in (record.get("slotContent") or {}).items():
            if find_in_nested(slot, node_id) is not None:
                ctx.slot_residents[node_id] = candidate
                return candidate, slot_id
    return None


def _slot_resident(ctx: ExecutionContext, node_id: str, instance_id: str | None = None) -> NodeData | None:
    located = _locate_slot_resident(ctx, node_id, instance_id)
    if located is None:
        return None
    owner, slot_id = located
    found = find_in_nested(ctx.store.nodes_by_id[owner]["slotContent"][slot_id], node_id)
    return dict(found) if found is not None else None


def _edit_nested(node: Mapping[str, Any], node_id: str, edit: Callable[[NodeData], NodeData | None]) -> NodeData | None:
    if node.get("id") == node_id:
        return edit(dict(node))
    if not node.get("children"):
        return dict(node)
    children = (_edit_nested(child, node_id, edit) for child in node["children"])
    return {**node, "children": [child for child in children if child is not None]}


def _edit_slot_resident(
    ctx: ExecutionContext,
    node_id: str,
    edit: Callable[[NodeData], NodeData | None],
    instance_id: str | None = None,
) -> str:
    """Rewrite the slot content holding ``node_id``; ``edit`` returning ``None`` removes the node.

    Returns the owning instance's id.
    """
    located = _locate_slot_resident(ctx, node_id, instance_id)
    if located is None:
        raise ExecutionError(f'Node not found: "{node_id}"')
    owner, slot_id = located
    instance = ctx.store.nodes_by_id[owner]
    slots = dict(instance["slotContent"])
    updated = _edit_nested(slots[slot_id], node_id, edit)
    if updated is None:
        del slots[slot_id]
    else:
        slots[slot_id] = updated
    record = {k: v for k, v in instance.items() if k != "slotContent"}
    if slots:
        record["slotContent"] = slots
    ctx.store.nodes_by_id[owner] = record
    return owner


def _lookup(ctx: ExecutionContext, node_id: str, label: str = "Node") -> tuple[NodeData, bool]:
    """The record for ``node_id`` and whether it lives in slot content."""
    record = ctx.store.get(node_id)
    if record is not None:
        return record, False
    resident = _slot_resident(ctx, node_id)
    if resident is None:
        raise ExecutionError(f'{label} not found: "{node_id}"')
    return resident, True


def _owner_of(ctx: ExecutionContext, node_id: str) -> str | None:
    if node_id in ctx.store:
        return ctx.store.parent_by_id.get(node_id)
    return ctx.slot_residents.get(node_id)


# -- copy helpers -----------------------------------------------------------


def clone_with_new_ids(node: SceneNode, id_factory: Callable[[], str]) -> tuple[NodeData, dict[str, str]]:
    """Deep clone a tree with fresh ids; return the clone and the old->new id map.

    A reusable frame clones into an instance of itself.
    """
    id_map: dict[str, str] = {}

    def _clone(current: SceneNode) -> NodeData:
        new_id = id_factory()
        id_map[current.id] = new_id
        data = current.to_record()
        if current.type == "frame" and data.get("reusable"):
            instance: NodeData = {
                "id": new_id,
                "type": "ref",
                "componentId": current.id,
                "x": current.x,
                "y": current.y,
                "width": current.width,
                "height": current.height,
            }
            instance.update({k: data[k] for k in _COPIED_COMPONENT_PROPS if k in data})
            return instance
        data["id"] = new_id
        if current.children is not None:
            data["children"] = [_clone(child) for child in current.children]
        return data

    return _clone(node), id_map


def _patch_cloned_descendant(
    node: NodeData,
    segments: list[str],
    mapped: NodeData,
    override: Mapping[str, Any],
    ctx: ExecutionContext,
    theme: str,
) -> bool:
    """Apply a descendant patch inside a cloned tree; nested instances take it as an override."""
    head, rest = segments[0], segments[1:]
    for index, child in enumerate(node.get("children") or []):
        if child.get("id") != head:
            continue
        if rest and child.get("type") == "ref":
            patch = map_descendant_override(override, theme, ctx.variables)
            child = {**child, "descendants": set_override_by_path(child.get("descendants") or {}, rest, patch)}
        elif rest:
            return _patch_cloned_descendant(child, rest, mapped, override, ctx, theme)
        else:
            child = {**child, **mapped}
            if child.get("type") == "text" and ctx.measurer is not None and affects_text_measure(mapped):
                child = sync_text_dimensions(child, ctx.measurer)
        node["children"][index] = child
        return True
    return False


def _position_copy(clone: NodeData, source: Mapping[str, Any], direction: Any, padding: Any) -> None:
    pad = DEFAULT_COPY_PADDING if padding is None else padding
    if not isinstance(pad, int | float) or isinstance(pad, bool):
        raise ExecutionError(f"positionPadding must be a number, got {pad!r}")
    direction = direction or "right"
    x, y = source.get("x", 0), source.get("y", 0)
    if direction == "right":
        clone["x"], clone["y"] = x + source.get("width", 0) + pad, y
    elif direction == "left":
        clone["x"], clone["y"] = x - clone.get("width", 0) - pad, y
    elif direction == "bottom":
        clone["x"], clone["y"] = x, y + source.get("height", 0) + pad
    elif direction == "top":
        clone["x"], clone["y"] = x, y - clone.get("height", 0) - pad
    else:
        raise ExecutionError(f'Unknown positionDirection "{direction}" (expected one of {", ".join(COPY_DIRECTIONS)})')


# -- opcodes ----------------------------------------------------------------


def execute_insert(op: ParsedOperation, ctx: ExecutionContext) -> None:
    """``I(parent, nodeData)``"""
    _require_args(op, 2, "at least 2 arguments (parent, nodeData)")
    parent = resolve_parent(op.args[0], ctx)
    data = resolve_object(op.args[1])

    theme = _theme_for(ctx, _parent_record_id(ctx, parent))
    node = create_node(data, theme, ctx.variables, ctx.measurer, ctx.id_factory)
    node = apply_ref_defaults(node, data, ctx.store)
    node_id = _place(ctx, parent, node)
    _fit_instance_size(ctx, node_id)
    ctx.record_created(op, node_id)


def execute_copy(op: ParsedOperation, ctx: ExecutionContext) -> None:
    """``C(source, parent, copyData?)``"""
    _require_args(op, 2, "at least 2 arguments (sourceId, parent)")
    source_id = resolve_arg(op.args[0], ctx)
    parent = resolve_parent(op.args[1], ctx)
    patch = dict(resolve_object(op.args[2])) if len(op.args) >= 3 else {}

    source, in_slot = _lookup(ctx, source_id, "Source node")
    tree = SceneNode.model_validate(source) if in_slot else build_tree(ctx.store, [source_id])[0]
    clone, id_map = clone_with_new_ids(tree, ctx.id_factory)

    descendants = patch.pop("descendants", None) or {}
    direction = patch.pop("positionDirection", None)
    padding = patch.pop("positionPadding", None)
    theme = _theme_for(ctx, _parent_record_id(ctx, parent))

    if patch:
        mapped, _ = map_node_data(patch, theme, ctx.variables, existing=clone)
        clone.update(mapped)
        if clone.get("type") == "text" and ctx.measurer is not None and affects_text_measure(mapped):
            clone = sync_text_dimensions(clone, ctx.measurer)

    if not isinstance(descendants, Mapping):
        raise ExecutionError("descendants must be an object keyed by descendant id")
    for path, override in descendants.items():
        if not isinstance(override, Mapping):
            raise ExecutionError(f'Override for "{path}" must be an object')
        segments = [s for s in str(path).split("/") if s]
        if clone.get("type") == "ref":
            mapped_override = map_descendant_override(override, theme, ctx.variables)
            clone["descendants"] = set_override_by_path(clone.get("descendants") or {}, segments, mapped_override)
            continue
        remapped = [id_map.get(segment, segment) for segment in segments]
        mapped, _ = map_node_data(override, theme, ctx.variables)
        if not remapped or not _patch_cloned_descendant(clone, remapped, mapped, override, ctx, theme):
            raise ExecutionError(f'Descendant "{path}" not found in copied node "{source_id}"')

    if direction is not None or padding is not None:
        _position_copy(clone, source, direction, padding)

    _validated(clone)
    ctx.record_created(op, _place(ctx, parent, clone))


def execute_update(op: ParsedOperation, ctx: ExecutionContext) -> None:
    """``U(path, updateData)``"""
    _require_args(op, 2, "2 arguments (path, updateData)")
    path = resolve_arg(op.args[0], ctx)
    data = resolve_object(op.args[1])

    if "/" in path:
        head, segments, instance = _require_instance(ctx, path)
        slots = instance.get("slotContent") or {}
        target = segments[-1]
        resident = _slot_resident(ctx, target, head) if any(segment in slots for segment in segments) else None
        if resident is not None:
            # The path reaches into substituted slot content, which overrides never touch.
            updated = _updated_record(ctx, target, resident, data, head)
            _edit_slot_resident(ctx, target, lambda _: updated, head)
            return
        theme = _theme_for(ctx, ctx.store.parent_by_id.get(head))
        mapped = map_descendant_override(data, theme, ctx.variables)
        descendants = set_override_by_path(instance.get("descendants") or {}, segments, mapped)
        ctx.store.nodes_by_id[head] = {**instance, "descendants": descendants}
        return

    record, in_slot = _lookup(ctx, path)
    updated = _updated_record(ctx, path, record, data, _owner_of(ctx, path))
    if in_slot:
        _edit_slot_resident(ctx, path, lambda _: updated)
    else:
        ctx.store.nodes_by_id[path] = updated


def _updated_record(
    ctx: ExecutionContext,
    node_id: str,
    record: Mapping[str, Any],
    data: Mapping[str, Any],
    theme_parent: str | None,
) -> NodeData:
    if "id" in data and data["id"] != node_id:
        raise ExecutionError(f'Cannot change the id of "{node_id}"')
    theme = _theme_for(ctx, theme_parent)
    mapped, _ = map_node_data(data, theme, ctx.variables, existing=record)
    if mapped.get("type", record.get("type")) != record.get("type"):
        raise ExecutionError(f'Cannot change the type of "{node_id}"; use R() to replace it')

    updated = {**record, **mapped}
    if updated.get("type") == "text" and ctx.measurer is not None:
        updated = sync_text_dimensions(updated, ctx.measurer)
    return _validated(updated)


def execute_replace(op: ParsedOperation, ctx: ExecutionContext) -> None:
    """``R(path, nodeData)``"""
    _require_args(op, 2, "2 arguments (path, nodeData)")
    path = resolve_arg(op.args[0], ctx)
    data = resolve_object(op.args[1])

    if "/" in path:
        head, segments, instance = _require_instance(ctx, path)
        theme = _theme_for(ctx, ctx.store.parent_by_id.get(head))
        node = create_node(data, theme, ctx.variables, ctx.measurer, ctx.id_factory)
        slots = {**(instance.get("slotContent") or {}), segments[-1]: node}
        ctx.store.nodes_by_id[head] = {**instance, "slotContent": slots}
        ctx.slot_residents[node["id"]] = head
        ctx.record_created(op, node["id"])
        return

    _, in_slot = _lookup(ctx, path)
    parent_id = _owner_of(ctx, path)
    theme = _theme_for(ctx, parent_id)
    node = create_node(data, theme, ctx.variables, ctx.measurer, ctx.id_factory)
    node = apply_ref_defaults(node, data, ctx.store)

    if in_slot:
        if node["id"] != path:
            _check_unused_id(ctx, node["id"])
        owner = _edit_slot_resident(ctx, path, lambda _: node)
        ctx.slot_residents[node["id"]] = owner
        ctx.record_created(op, node["id"])
        return

    index = detach(ctx.store, path)
    remove_subtree(ctx.store, path)
    node_id = insert_tree(ctx.store, node, parent_id)
    attach(ctx.store, node_id, parent_id, index)
    _fit_instance_size(ctx, node_id)
    ctx.record_created(op, node_id)


def _resolve_index(arg: ParsedArg, ctx: ExecutionContext) -> int | None:
    if isinstance(arg, LiteralArg) and arg.value is None:
        return None
    if isinstance(arg, NumberArg):
        return int(arg.value)
    raw = resolve_arg(arg, ctx)
    try:
        return int(raw)
    except ValueError as exc:
        raise ExecutionError(f'Index must be a number, got "{raw}"') from exc


def execute_move(op: ParsedOperation, ctx: ExecutionContext) -> None:
    """``M(nodeId, parent, index?)``"""
    _require_args(op, 2, "at least 2 arguments (nodeId, parent)")
    node_id = resolve_arg(op.args[0], ctx)
    _, in_slot = _lookup(ctx, node_id)
    if in_slot:
        owner = ctx.slot_residents[node_id]
        raise ExecutionError(f'Cannot move "{node_id}": it lives in the slot content of instance "{owner}"')
    parent = resolve_parent(op.args[1], ctx)
    index = _resolve_index(op.args[2], ctx) if len(op.args) >= 3 else None

    if parent is not None and "/" in parent:
        raise ExecutionError(f'Cannot move "{node_id}" into instance path "{parent}"')
    if parent is not None and parent not in ctx.store:
        raise ExecutionError(f'Cannot move "{node_id}" into slot content node "{parent}"')
    if parent is not None and (parent == node_id or is_descendant(ctx.store, parent, node_id)):
        raise ExecutionError(f'Cannot move "{node_id}" into its own subtree')

    detach(ctx.store, node_id)
    attach(ctx.store, node_id, parent, index)


def execute_delete(op: ParsedOperation, ctx: ExecutionContext) -> None:
    """``D(nodeId)``"""
    _require_args(op, 1, "1 argument (nodeId)")
    node_id = resolve_arg(op.args[0], ctx)
    _, in_slot = _lookup(ctx, node_id)
    if in_slot:
        _edit_slot_resident(ctx, node_id, lambda _: None)
    else:
        remove_subtree(ctx.store, node_id)


def execute_generate(op: ParsedOperation, ctx: ExecutionContext) -> None:
    """``G(nodeId, kind, prompt)``: stamps a placeholder image; no image is generated."""
    _require_args(op, 3, "3 arguments (nodeId, type, prompt)")
    node_id = resolve_arg(op.args[0], ctx)
    resolve_arg(op.args[1], ctx)
    prompt = resolve_arg(op.args[2], ctx)
    record, in_slot = _lookup(ctx, node_id)

    url = PLACEHOLDER_IMAGE_URL.format(text=quote(prompt[:30], safe="-_.!~*'()"))
    updated = {
        **record,
        "imageFill": {"url": url, "mode": "fill"},
        "name": record.get("name") or f"Image: {prompt[:50]}",
    }
    if in_slot:
        _edit_slot_resident(ctx, node_id, lambda _: updated)
    else:
        ctx.store.nodes_by_id[node_id] = updated
    ctx.issues.append(f'G operation on line {op.line}: Image generation is a placeholder. Prompt: "{prompt}"')


OPERATIONS: dict[str, Callable[[ParsedOperation, ExecutionContext], None]] = {
    "I": execute_insert,
    "C": execute_copy,
    "U": execute_update,
    "R": execute_replace,
    "M": execute_move,
    "D": execute_delete,
    "G": execute_generate,
}


def execute_operation(op: ParsedOperation, ctx: ExecutionContext) -> None:
    handler = OPERATIONS.get(op.op)
    if handler is None:
        raise ExecutionError(f"Unknown operation: {op.op}", op.line)
    try:
        handler(op, ctx)
    except ExecutionError as exc:
        if exc.line is not None:
            raise
        raise ExecutionError(str(exc), op.line) from exc
    logger.debug("Applied %s", op.describe())


def serialize_created_nodes(ctx: ExecutionContext, depth: int = CREATED_NODE_DEPTH) -> list[dict[str, Any]]:
    """Serialize each created node that still exists, once, in creation order."""
    results: list[dict[str, Any]] = []
    seen: set[str] = set()
    for node_id in ctx.created_node_ids:
        if node_id in seen:
            continue
        seen.add(node_id)
        if node_id in ctx.store:
            serialized = serialize_node(ctx.store, node_id, depth)
        else:
            serialized = _serialize_slot_resident(ctx, node_id, depth)
        if serialized is not None:
            results.append(serialized)
    return results


def _serialize_slot_resident(ctx: ExecutionContext, node_id: str, depth: int) -> dict[str, Any] | None:
    instance = ctx.store.get(ctx.slot_residents.get(node_id, ""))
    if instance is None:
        return None
    for slot in (instance.get("slotContent") or {}).values():
        found = find_in_nested(slot, node_id)
        if found is not None:
            return serialize_nested(found, depth)
    return None
