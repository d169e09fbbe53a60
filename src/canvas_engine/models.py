from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NodeType = Literal["frame", "group", "rect", "ellipse", "text", "path", "ref", "line", "polygon"]

NODE_TYPES: frozenset[str] = frozenset(NodeType.__args__)  # type: ignore[attr-defined]
CONTAINER_TYPES: frozenset[str] = frozenset({"frame", "group"})


class SceneNode(BaseModel):
    """Nested, traversable view of a node and its children.

    Built on demand from the flat store; only geometry and structure are
    declared, every other property travels as an extra field.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    name: str | None = None
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    children: list["SceneNode"] | None = None

    @property
    def is_container(self) -> bool:
        return self.type in CONTAINER_TYPES

    def prop(self, key: str, default: Any = None) -> Any:
        """Read a declared or extra property by its document key."""
        if key in type(self).model_fields:
            value = getattr(self, key)
            return default if value is None else value
        extra = self.model_extra or {}
        return extra.get(key, default)

    def to_record(self) -> dict[str, Any]:
        """Dump as a nested node dict, omitting unset properties."""
        return self.model_dump(exclude_none=True)


SceneNode.model_rebuild()  # necessary for recursive types


class Variable(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    type: Literal["color"] = "color"
    value: str
    theme_values: dict[str, str] = Field(default_factory=dict)

    def value_for(self, theme: str) -> str:
        return self.theme_values.get(theme, self.value)


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BatchSuccess(_Payload):
    success: Literal[True] = True
    operations_executed: int
    created_nodes: list[dict[str, Any]]
    issues: list[str] | None = None


class BatchFailure(_Payload):
    error: str
    completed_operations: list[str] | None = None
    total_operations: int | None = None


BatchResult = BatchSuccess | BatchFailure
