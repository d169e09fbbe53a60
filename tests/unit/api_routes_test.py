"""Tests for the FastAPI routes against an in-memory document."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from canvas_engine.api.app import create_app
from canvas_engine.api.dependencies import get_document
from canvas_engine.core.document import Document


@pytest.fixture
def client(document: Document) -> TestClient:
    app = create_app()

    def _override() -> Iterator[Document]:
        yield document

    app.dependency_overrides[get_document] = _override
    return TestClient(app)


class TestHealthRoute:
    def test_health_returns_ok(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestBatchDesignRoute:
    def test_success(self, client: TestClient, document: Document) -> None:
        resp = client.post("/batch-design", json={"operations": 'n=I("page", {"type": "ellipse", "name": "Dot"})'})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["success"] is True
        assert body["operationsExecuted"] == 1
        assert body["createdNodes"][0]["name"] == "Dot"
        assert body["createdNodes"][0]["id"] in document.store

    def test_execution_failure_is_422(self, client: TestClient, document: Document) -> None:
        resp = client.post("/batch-design", json={"operations": 'U("box", {"name": "B"})\nD("nope")'})
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"].startswith("Execution error: Line 2: ")
        assert body["totalOperations"] == 2
        assert document.store.nodes_by_id["box"]["name"] == "Box"

    def test_parse_failure_is_422(self, client: TestClient) -> None:
        resp = client.post("/batch-design", json={"operations": "I(page"})
        assert resp.status_code == 422
        assert resp.json()["error"].startswith("Parse error: ")

    def test_missing_body_field(self, client: TestClient) -> None:
        resp = client.post("/batch-design", json={})
        assert resp.status_code == 422
        assert "detail" in resp.json()

    def test_wrongly_typed_value_is_422(self, client: TestClient, document: Document) -> None:
        script = 'U("box", {"name": "B"})\nI("page", {"type": "text", "content": "hi", "letterSpacing": "1px"})'
        resp = client.post("/batch-design", json={"operations": script})
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"].startswith("Execution error: Line 2: ")
        assert body["completedOperations"] == ["U(...) [line 1]"]
        assert document.store.nodes_by_id["box"]["name"] == "Box"


class TestNodesRoutes:
    def test_list_top_level(self, client: TestClient) -> None:
        resp = client.get("/nodes", params={"depth": 0})
        assert resp.status_code == 200
        assert [node["id"] for node in resp.json()["nodes"]] == ["page", "dark"]

    def test_list_children(self, client: TestClient) -> None:
        resp = client.get("/nodes", params={"parentId": "page", "depth": 0})
        assert [node["id"] for node in resp.json()["nodes"]] == ["card", "card1", "box"]

    def test_search(self, client: TestClient) -> None:
        resp = client.get("/nodes", params={"type": "frame", "reusable": "true"})
        assert [node["id"] for node in resp.json()["nodes"]] == ["card"]

    def test_negative_depth_rejected(self, client: TestClient) -> None:
        assert client.get("/nodes", params={"depth": -1}).status_code == 422

    def test_get_node(self, client: TestClient) -> None:
        resp = client.get("/nodes/card", params={"depth": 0})
        assert resp.status_code == 200
        assert resp.json()["children"] == "..."

    def test_get_instance_descendant(self, client: TestClient) -> None:
        resp = client.get("/nodes/card1/title")
        assert resp.status_code == 200
        assert resp.json()["text"] == "Title"

    def test_get_unknown_node(self, client: TestClient) -> None:
        resp = client.get("/nodes/nope")
        assert resp.status_code == 404


class TestHistoryRoutes:
    def test_undo_redo(self, client: TestClient, document: Document) -> None:
        client.post("/batch-design", json={"operations": 'D("box")'})

        resp = client.post("/undo")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "canUndo": False, "canRedo": True}
        assert "box" in document.store

        resp = client.post("/redo")
        assert resp.json() == {"success": True, "canUndo": True, "canRedo": False}
        assert "box" not in document.store

    def test_nothing_to_undo(self, client: TestClient) -> None:
        resp = client.post("/undo")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Nothing to undo"


class TestInstanceRoutes:
    def test_detach(self, client: TestClient, document: Document) -> None:
        resp = client.post("/instances/card1/detach")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "canUndo": True, "canRedo": False}
        assert document.store.nodes_by_id["card1"]["type"] == "frame"

    def test_detach_non_instance(self, client: TestClient) -> None:
        assert client.post("/instances/box/detach").status_code == 404

    def test_reset_override_property(self, client: TestClient, document: Document) -> None:
        client.post("/batch-design", json={"operations": 'U("card1/title", {"content": "Hi", "fill": "#f00"})'})
        resp = client.delete("/instances/card1/title/override", params={"property": "fill"})
        assert resp.status_code == 200
        assert document.store.nodes_by_id["card1"]["descendants"] == {"title": {"text": "Hi"}}

    def test_reset_missing_override(self, client: TestClient) -> None:
        resp = client.delete("/instances/card1/title/override")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "No override at card1/title"

    def test_reset_slot(self, client: TestClient, document: Document) -> None:
        client.post("/batch-design", json={"operations": 'I("card1/body", {"type": "rect"})'})
        assert client.delete("/instances/card1/slots/body").status_code == 200
        assert "slotContent" not in document.store.nodes_by_id["card1"]
        assert client.delete("/instances/card1/slots/body").status_code == 404
