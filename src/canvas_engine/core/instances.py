"""Instance override resolution.

An instance (``ref`` node) reuses the subtree of a component (a reusable
frame) without copying it. What the instance shows is computed on demand:

1. the component's children, in order;
2. a child whose id has a ``slotContent`` entry is replaced wholesale by it;
3. otherwise the matching ``descendants`` patch is merged over the child, and
   the same rule repeats for its children using the patch's nested
   ``descendants`` map;
4. the instance's own visual properties and sizing win over the component's;
5. nested instances are resolved the same way.

Nothing here mutates the store, and a dangling component, slot or descendant
id never raises: it simply contributes nothing to the result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from canvas_engine.core.ports.layout import LayoutSolver
from canvas_engine.core.ports.text import TextMeasurer
from canvas_engine.core.store import FlatStore
from canvas_engine.core.text import affects_text_measure, sync_text_dimensions
from canvas_engine.core.tree import build_tree
from canvas_engine.models import SceneNode

Overrides = dict[str, dict[str, Any]]

# Instance-level properties layered over the component's defaults.
INSTANCE_VISUAL_PROPS: tuple[str, ...] = (
    "fill",
    "fillBinding",
    "fillOpacity",
    "stroke",
    "strokeBinding",
    "strokeWidth",
    "strokeOpacity",
    "gradientFill",
    "opacity",
    "imageFill",
)

_NOT_PATCHABLE = frozenset({"id", "type", "children", "descendants"})


@dataclass(frozen=True)
class PreparedInstance:
    component: SceneNode
    resolved: SceneNode
    effective_width: float
    effective_height: float


def split_instance_path(path: str) -> tuple[str, list[str]]:
    """Split ``"instance/a/b"`` into ``("instance", ["a", "b"])``."""
    head, _, rest = path.partition("/")
    return head, [segment for segment in rest.split("/") if segment]


def _as_data(node: str | Mapping[str, Any] | SceneNode, store: FlatStore) -> dict[str, Any] | None:
    if isinstance(node, str):
        record = store.get(node)
        return dict(record) if record is not None else None
    if isinstance(node, SceneNode):
        return node.model_dump(exclude_none=True, exclude={"children"})
    return dict(node)


def find_component(store: FlatStore, component_id: str | None) -> SceneNode | None:
    record = store.get(component_id) if component_id else None
    if record is None or record.get("type") != "frame" or not record.get("reusable"):
        return None
    trees = build_tree(store, [component_id])  # type: ignore[list-item]
    return trees[0] if trees else None


def merged_value(instance: Mapping[str, Any], component: Mapping[str, Any], key: str) -> Any:
    """Instance value, else component value, else ``None``."""
    value = instance.get(key)
    return component.get(key) if value is None else value


def apply_descendant_override(
    node: SceneNode,
    override: Mapping[str, Any] | None,
    measurer: TextMeasurer | None = None,
) -> SceneNode:
    """Shallow-merge ``override`` onto ``node``; nested ``descendants`` are not applied here."""
    if not override:
        return node
    patch = {k: v for k, v in override.items() if k not in _NOT_PATCHABLE}
    if not patch:
        return node
    data = node.model_dump(exclude_none=True, exclude={"children"})
    data.update(patch)
    if node.type == "text" and measurer is not None and affects_text_measure(patch):
        data = sync_text_dimensions(data, measurer)
    if node.children is not None:
        data["children"] = node.children
    return SceneNode.model_validate(data)


def resolve_instance(
    store: FlatStore,
    ref: str | Mapping[str, Any] | SceneNode,
    measurer: TextMeasurer | None = None,
    _visiting: frozenset[str] = frozenset(),
) -> SceneNode | None:
    """Compute the effective frame an instance renders as, or ``None``."""
    instance = _as_data(ref, store)
    if instance is None or instance.get("type") != "ref":
        return None
    component = find_component(store, instance.get("componentId"))
    if component is None or component.id in _visiting:
        return None
    visiting = _visiting | {component.id}

    root_overrides: Overrides = instance.get("descendants") or {}
    slots: dict[str, Any] = instance.get("slotContent") or {}
    children = [
        resolve_descendant(child, store, root_overrides, slots, measurer=measurer, _visiting=visiting)
        for child in component.children or []
    ]

    base = component.model_dump(exclude_none=True, exclude={"children"})
    data: dict[str, Any] = {
        **base,
        "id": instance["id"],
        "type": "frame",
        "reusable": False,
        "name": instance.get("name") or component.name,
        "x": instance.get("x", 0),
        "y": instance.get("y", 0),
        "width": merged_value(instance, base, "width"),
        "height": merged_value(instance, base, "height"),
    }
    for prop in INSTANCE_VISUAL_PROPS:
        if instance.get(prop) is not None:
            data[prop] = instance[prop]
    if instance.get("sizing") or base.get("sizing"):
        data["sizing"] = {**(base.get("sizing") or {}), **(instance.get("sizing") or {})}
    data["children"] = children
    return SceneNode.model_validate(data)


def resolve_descendant(
    node: SceneNode,
    store: FlatStore,
    root_overrides: Overrides,
    slots: Mapping[str, Any],
    local_overrides: Overrides | None = None,
    measurer: TextMeasurer | None = None,
    _visiting: frozenset[str] = frozenset(),
) -> SceneNode:
    slot = slots.get(node.id)
    if slot is not None:
        # Substitution is total: the outer instance's patches stop here.
        resolved = SceneNode.model_validate(slot)
        root_overrides, slots, nested = {}, {}, None
    else:
        override = (local_overrides or {}).get(node.id) or root_overrides.get(node.id)
        resolved = apply_descendant_override(node, override, measurer)
        nested = override.get("descendants") if override else None

    if resolved.type == "ref":
        resolved = resolve_instance(store, resolved, measurer, _visiting) or resolved

    if resolved.children:
        children = [
            resolve_descendant(child, store, root_overrides, slots, nested, measurer, _visiting)
            for child in resolved.children
        ]
        resolved = resolved.model_copy(update={"children": children})
    return resolved


def prepare_instance(
    store: FlatStore,
    ref: str | Mapping[str, Any] | SceneNode,
    layout: LayoutSolver | None = None,
    measurer: TextMeasurer | None = None,
) -> PreparedInstance | None:
    """Resolve an instance and work out the size it occupies.

    The layout solver is consulted only for ``fit_content`` sizing of an
    auto-layout component; otherwise the instance's own size stands.
    """
    instance = _as_data(ref, store)
    if instance is None:
        return None
    component = find_component(store, instance.get("componentId"))
    resolved = resolve_instance(store, instance, measurer)
    if component is None or resolved is None:
        return None

    instance_sizing = instance.get("sizing") or {}
    component_sizing = component.prop("sizing", {})
    fit_width = merged_value(instance_sizing, component_sizing, "widthMode") == "fit_content"
    fit_height = merged_value(instance_sizing, component_sizing, "heightMode") == "fit_content"
    auto_layout = bool((resolved.prop("layout") or {}).get("autoLayout"))

    width, height = resolved.width, resolved.height
    if layout is not None and auto_layout and (fit_width or fit_height):
        intrinsic_width, intrinsic_height = layout.intrinsic_size(resolved, fit_width, fit_height)
        width = intrinsic_width if fit_width else width
        height = intrinsic_height if fit_height else height
    return PreparedInstance(component=component, resolved=resolved, effective_width=width, effective_height=height)


def get_override_by_path(overrides: Overrides, segments: list[str]) -> dict[str, Any] | None:
    cursor: Mapping[str, Any] = overrides
    current: dict[str, Any] | None = None
    for index, segment in enumerate(segments):
        current = cursor.get(segment)
        if current is None:
            return None
        if index < len(segments) - 1:
            cursor = current.get("descendants") or {}
    return current


def set_override_by_path(overrides: Overrides, segments: list[str], patch: Mapping[str, Any]) -> Overrides:
    """Return a copy of ``overrides`` with ``patch`` merged at ``segments``.

    Intermediate levels are created as needed; the input is not mutated.
    """
    result: Overrides = dict(overrides)
    if not segments:
        return result
    cursor = result
    for segment in segments[:-1]:
        current = dict(cursor.get(segment) or {})
        nested = dict(current.get("descendants") or {})
        current["descendants"] = nested
        cursor[segment] = current
        cursor = nested
    leaf = segments[-1]
    cursor[leaf] = {**(cursor.get(leaf) or {}), **patch}
    return result


def remove_override(overrides: Overrides, segments: list[str], prop: str | None = None) -> Overrides:
    """Return a copy of ``overrides`` without the patch (or one property of it) at ``segments``.

    Levels left empty are pruned.
    """
    if not segments:
        return dict(overrides)
    head, rest = segments[0], segments[1:]
    current = overrides.get(head)
    if current is None:
        return dict(overrides)

    if rest:
        updated = dict(current)
        nested = remove_override(current.get("descendants") or {}, rest, prop)
        if nested:
            updated["descendants"] = nested
        else:
            updated.pop("descendants", None)
    elif prop is not None:
        updated = {k: v for k, v in current.items() if k != prop}
    else:
        updated = {}

    result = {k: v for k, v in overrides.items() if k != head}
    if updated:
        result[head] = updated
    return result


def find_descendant_by_path(children: list[SceneNode], path: str) -> SceneNode | None:
    """Walk resolved children along a slash-separated id path.

    Hidden (``visible`` false) and disabled (``enabled`` false) nodes are skipped.
    """

    def _visible(items: list[SceneNode]) -> list[SceneNode]:
        return [n for n in items if n.prop("visible", True) is not False and n.prop("enabled", True) is not False]

    current: SceneNode | None = None
    candidates = _visible(children)
    for segment in (s for s in path.split("/") if s):
        current = next((n for n in candidates if n.id == segment), None)
        if current is None:
            return None
        candidates = _visible(current.children or [])
    return current
