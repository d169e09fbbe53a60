"""Shared fixtures and helpers for tests."""

from pathlib import Path
from typing import Any

import pytest

from canvas_engine.core.document import Document
from canvas_engine.core.store import FlatStore
from canvas_engine.core.variables import VariableTable
from canvas_engine.models import Variable

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Shared unit-test fixtures
# ---------------------------------------------------------------------------


def card_component() -> dict[str, Any]:
    """A reusable card: a title, a body slot holding one text, and a footer group."""
    return {
        "id": "card",
        "type": "frame",
        "name": "Card",
        "reusable": True,
        "x": 0,
        "y": 0,
        "width": 200,
        "height": 120,
        "fill": "#ffffff",
        "children": [
            {"id": "title", "type": "text", "text": "Title", "x": 10, "y": 10, "width": 60, "height": 20},
            {
                "id": "body",
                "type": "frame",
                "x": 10,
                "y": 40,
                "width": 180,
                "height": 60,
                "children": [
                    {"id": "bodyText", "type": "text", "text": "Body", "x": 0, "y": 0, "width": 40, "height": 20},
                ],
            },
            {
                "id": "footer",
                "type": "group",
                "children": [{"id": "footerIcon", "type": "ellipse", "width": 8, "height": 8}],
            },
        ],
    }


def sample_tree() -> list[dict[str, Any]]:
    return [
        {
            "id": "page",
            "type": "frame",
            "name": "Page",
            "width": 1200,
            "height": 800,
            "children": [
                card_component(),
                {"id": "card1", "type": "ref", "componentId": "card", "x": 300, "y": 0, "width": 200, "height": 120},
                {"id": "box", "type": "rect", "name": "Box", "x": 600, "y": 0, "width": 50, "height": 50},
            ],
        },
        {"id": "dark", "type": "frame", "name": "Dark", "themeOverride": "dark", "width": 400, "height": 400},
    ]


def sample_variables() -> list[Variable]:
    return [
        Variable(id="v-primary", name="primary", value="#0000ff", theme_values={"dark": "#8888ff"}),
        Variable(id="v-surface", name="$surface", value="#fafafa"),
    ]


@pytest.fixture
def store() -> FlatStore:
    return FlatStore.from_tree(sample_tree())


@pytest.fixture
def document() -> Document:
    return Document(store=FlatStore.from_tree(sample_tree()), variables=VariableTable(sample_variables()))


@pytest.fixture
def empty_document() -> Document:
    return Document()
