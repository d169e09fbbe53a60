"""Tests for mapping script node data to node records."""

from __future__ import annotations

import itertools
from collections.abc import Callable

import pytest

from canvas_engine.core.errors import ExecutionError
from canvas_engine.core.mapping import (
    create_node,
    map_descendant_override,
    map_node_data,
    parse_sizing_value,
)
from canvas_engine.core.text import EstimatedTextMeasurer
from canvas_engine.core.variables import VariableTable
from tests.conftest import sample_variables


@pytest.fixture
def variables() -> VariableTable:
    return VariableTable(sample_variables())


def _ids() -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"n{next(counter)}"


class TestParseSizingValue:
    def test_modes(self) -> None:
        assert parse_sizing_value("fill_container") == ("fill_container", None)
        assert parse_sizing_value("fit_content(240)") == ("fit_content", 240.0)

    def test_plain_values_are_not_sizing(self) -> None:
        assert parse_sizing_value(100) is None
        assert parse_sizing_value("auto") is None


class TestMapNodeData:
    def test_shorthands(self) -> None:
        mapped, children = map_node_data(
            {"type": "rectangle", "content": 5, "ref": "card", "placeholder": True, "children": [{"type": "rect"}]},
            "light",
        )
        assert mapped == {"type": "rect", "text": "5", "componentId": "card"}
        assert children == [{"type": "rect"}]

    def test_layout_padding_and_gap(self) -> None:
        mapped, _ = map_node_data({"layout": "horizontal", "padding": 8, "gap": 4}, "light")
        assert mapped["layout"] == {
            "autoLayout": True,
            "flexDirection": "row",
            "paddingTop": 8,
            "paddingRight": 8,
            "paddingBottom": 8,
            "paddingLeft": 8,
            "gap": 4,
        }

    def test_layout_merges_into_existing(self) -> None:
        mapped, _ = map_node_data({"gap": 12}, "light", existing={"layout": {"autoLayout": True, "gap": 2}})
        assert mapped["layout"] == {"autoLayout": True, "gap": 12}

    def test_sizing_strings(self) -> None:
        mapped, _ = map_node_data({"width": "fill_container", "height": "fit_content(80)"}, "light")
        assert mapped["sizing"] == {"widthMode": "fill_container", "heightMode": "fit_content"}
        assert mapped["height"] == 80
        assert "width" not in mapped

    def test_variable_reference_keeps_binding_and_snapshot(self, variables: VariableTable) -> None:
        mapped, _ = map_node_data({"fill": "$primary", "stroke": "$surface"}, "dark", variables)
        assert mapped["fillBinding"] == {"variableId": "v-primary"}
        assert mapped["fill"] == "#8888ff"
        assert mapped["strokeBinding"] == {"variableId": "v-surface"}
        assert mapped["stroke"] == "#fafafa"

    def test_variable_id_binding(self, variables: VariableTable) -> None:
        mapped, _ = map_node_data({"fill": {"variableId": "v-primary"}}, "light", variables)
        assert mapped == {"fillBinding": {"variableId": "v-primary"}, "fill": "#0000ff"}

    def test_unknown_variable_passes_through(self, variables: VariableTable) -> None:
        mapped, _ = map_node_data({"fill": "$missing"}, "light", variables)
        assert mapped == {"fill": "$missing"}


class TestCreateNode:
    def test_defaults(self) -> None:
        node = create_node({}, "light", id_factory=_ids())
        assert node == {"id": "n1", "type": "frame", "x": 0, "y": 0, "width": 100, "height": 100, "children": []}

    def test_nested_children_get_ids(self) -> None:
        node = create_node({"type": "group", "children": [{"type": "rect"}, {"type": "ellipse"}]}, "light", id_factory=_ids())
        assert [child["id"] for child in node["children"]] == ["n2", "n3"]

    def test_caller_id_is_kept(self) -> None:
        assert create_node({"id": "mine", "type": "rect"}, "light")["id"] == "mine"

    def test_text_is_measured(self) -> None:
        node = create_node({"type": "text", "content": "hi"}, "light", measurer=EstimatedTextMeasurer())
        assert (node["width"], node["height"]) == (20, 20)

    def test_fixed_width_text_wraps(self) -> None:
        data = {"type": "text", "content": "one two three", "textWidthMode": "fixed", "width": 50}
        node = create_node(data, "light", measurer=EstimatedTextMeasurer())
        assert node["width"] == 50
        assert node["height"] == 58

    def test_unknown_type(self) -> None:
        with pytest.raises(ExecutionError, match="Unknown node type"):
            create_node({"type": "star"}, "light")

    def test_invalid_geometry(self) -> None:
        with pytest.raises(ExecutionError, match="Invalid node data"):
            create_node({"type": "rect", "x": {"bad": 1}}, "light")


class TestMapDescendantOverride:
    def test_content_and_paint(self, variables: VariableTable) -> None:
        mapped = map_descendant_override({"content": "Hi", "fill": "$primary", "ref": "x", "opacity": 0.5}, "light", variables)
        assert mapped == {"text": "Hi", "fillBinding": {"variableId": "v-primary"}, "fill": "#0000ff", "opacity": 0.5}
