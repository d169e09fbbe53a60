"""Tests for the MCP server tool definitions."""

from __future__ import annotations

import inspect
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from canvas_engine.core.document import Document
from canvas_engine.core.persistence import load_document, save_document
from canvas_engine.mcp.server import create_mcp_server


def _tool(server: FastMCP, name: str) -> Callable[..., Any]:
    return server._tool_manager._tools[name].fn  # type: ignore[attr-defined,no-any-return]


class TestMcpServerCreation:
    def test_creates_server(self, document: Document) -> None:
        server = create_mcp_server(document)
        assert server is not None
        assert server.name == "canvas-engine"

    def test_server_has_tools(self, document: Document) -> None:
        server = create_mcp_server(document)
        tool_names = {t.name for t in server._tool_manager._tools.values()}
        assert {"batch_design", "batch_get", "get_editor_state", "undo", "redo", "open_document"} <= tool_names
        assert {"detach_instance", "reset_override", "reset_slot"} <= tool_names

    def test_batch_get_defaults(self, document: Document) -> None:
        sig = inspect.signature(_tool(create_mcp_server(document), "batch_get"))
        assert sig.parameters["read_depth"].default == 1
        assert sig.parameters["search_depth"].default is None
        assert sig.parameters["resolve_variables"].default is False


class TestMcpTools:
    def test_batch_design_and_undo(self, document: Document) -> None:
        server = create_mcp_server(document)
        result = json.loads(_tool(server, "batch_design")('b=I("page", {"type": "rect", "name": "New"})'))
        assert result["success"] is True
        assert result["createdNodes"][0]["name"] == "New"

        assert json.loads(_tool(server, "undo")()) == {"success": True}
        assert json.loads(_tool(server, "undo")())["error"] == "Nothing to undo"
        assert json.loads(_tool(server, "redo")()) == {"success": True}

    def test_batch_design_failure(self, document: Document) -> None:
        server = create_mcp_server(document)
        result = json.loads(_tool(server, "batch_design")('D("nope")'))
        assert "success" not in result
        assert result["error"].startswith("Execution error: ")

    def test_batch_design_wrongly_typed_value(self, document: Document) -> None:
        server = create_mcp_server(document)
        script = 'I("page", {"type": "text", "content": "hi", "lineHeight": "normal"})'
        result = json.loads(_tool(server, "batch_design")(script))
        assert result["error"].startswith("Execution error: Line 1: ")
        assert result["completedOperations"] == []
        assert result["totalOperations"] == 1

    def test_batch_get(self, document: Document) -> None:
        server = create_mcp_server(document)
        payload = json.loads(_tool(server, "batch_get")(node_ids=["box", "nope"], read_depth=0))
        assert [node["id"] for node in payload["nodes"]] == ["box"]
        assert payload["notFound"] == ["nope"]

    def test_editor_state(self, document: Document) -> None:
        server = create_mcp_server(document)
        state = json.loads(_tool(server, "get_editor_state")())
        assert [node["id"] for node in state["topLevelNodes"]] == ["page", "dark"]
        assert state["reusableComponents"] == [{"id": "card", "name": "Card"}]
        assert state["canUndo"] is False
        assert state["maxOperationsPerBatch"] == 25

    def test_successful_edits_are_saved(self, document: Document, tmp_path: Path) -> None:
        path = tmp_path / "doc.json"
        save_document(document, path)
        server = create_mcp_server(load_document(path), str(path))
        _tool(server, "batch_design")('D("box")')
        assert "box" not in load_document(path).store

    def test_open_document(self, document: Document, tmp_path: Path) -> None:
        path = tmp_path / "doc.json"
        save_document(document, path)
        server = create_mcp_server(Document())

        opened = json.loads(_tool(server, "open_document")(str(path)))
        assert opened["success"] is True
        assert opened["nodeCount"] == len(document.store.nodes_by_id)

        fresh = json.loads(_tool(server, "open_document")("new"))
        assert fresh == {"success": True, "path": None, "nodeCount": 0}

        missing = json.loads(_tool(server, "open_document")(str(tmp_path / "missing.json")))
        assert "Cannot read" in missing["error"]

    def test_instance_tools(self, document: Document) -> None:
        server = create_mcp_server(document)
        _tool(server, "batch_design")('U("card1/title", {"content": "Hi", "fill": "#f00"})\nI("card1/body", {"type": "rect"})')

        assert json.loads(_tool(server, "reset_override")("card1/title", "fill")) == {"success": True}
        assert document.store.nodes_by_id["card1"]["descendants"] == {"title": {"text": "Hi"}}
        assert json.loads(_tool(server, "reset_slot")("card1", "body")) == {"success": True}
        assert "slotContent" not in document.store.nodes_by_id["card1"]
        assert json.loads(_tool(server, "detach_instance")("card1")) == {"success": True}
        assert document.store.nodes_by_id["card1"]["type"] == "frame"

        missing = json.loads(_tool(server, "detach_instance")("box"))
        assert missing == {"success": False, "error": 'Instance not found: "box"'}
        assert json.loads(_tool(server, "reset_slot")("card1", "body"))["success"] is False
