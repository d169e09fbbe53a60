"""FastMCP server exposing canvas-engine tools."""

from __future__ import annotations

import json
from typing import Any

from fastmcp import FastMCP

from canvas_engine.core.batch import batch_design as _batch_design
from canvas_engine.core.document import Document
from canvas_engine.core.errors import DocumentFormatError
from canvas_engine.core.persistence import load_document, new_document, save_document
from canvas_engine.core.script import MAX_OPERATIONS
from canvas_engine.core.serialize import batch_get as _batch_get

NEW_DOCUMENT = "new"


def create_mcp_server(document: Document, path: str | None = None) -> FastMCP:
    """Create a FastMCP server editing the given document.

    When ``path`` is set, every successful edit is written back to it.
    """

    mcp = FastMCP("canvas-engine", instructions="Read and edit a design canvas document with operation scripts.")
    state: dict[str, Any] = {"document": document, "path": path}

    def _persist() -> None:
        if state["path"]:
            save_document(state["document"], state["path"])

    @mcp.tool()
    def batch_design(operations: str) -> str:
        """Apply an operation script to the document as one undoable edit.

        One operation per line: ``[name=]OP(args)`` with OP one of
        I (insert), C (copy), U (update), R (replace), M (move), D (delete),
        G (placeholder image). At most 25 operations per call.
        """
        result = _batch_design(state["document"], operations)
        if json.loads(result).get("success"):
            _persist()
        return result

    @mcp.tool()
    def batch_get(
        patterns: list[dict[str, Any]] | None = None,
        node_ids: list[str] | None = None,
        parent_id: str | None = None,
        read_depth: int = 1,
        search_depth: int | None = None,
        resolve_variables: bool = False,
    ) -> str:
        """Search nodes by pattern (type, name regex, reusable) and/or read nodes by id."""
        payload = _batch_get(
            state["document"],
            patterns=patterns,
            node_ids=node_ids,
            parent_id=parent_id,
            read_depth=read_depth,
            search_depth=search_depth,
            resolve_variables=resolve_variables,
        )
        return json.dumps(payload)

    @mcp.tool()
    def get_editor_state() -> str:
        """Summarise the open document: top-level nodes, components, theme and history."""
        current: Document = state["document"]
        with current.lock:
            store = current.store
            components = [
                {"id": node_id, "name": record.get("name")}
                for node_id, record in store.nodes_by_id.items()
                if record.get("type") == "frame" and record.get("reusable")
            ]
            top_level = [
                {"id": node_id, "type": store.nodes_by_id[node_id].get("type"), "name": store.nodes_by_id[node_id].get("name")}
                for node_id in store.root_ids
            ]
            summary = {
                "path": state["path"],
                "activeTheme": current.variables.active_theme,
                "nodeCount": len(store.nodes_by_id),
                "topLevelNodes": top_level,
                "reusableComponents": components,
                "variables": [v.model_dump(by_alias=True) for v in current.variables.variables],
                "canUndo": current.history.can_undo,
                "canRedo": current.history.can_redo,
                "maxOperationsPerBatch": MAX_OPERATIONS,
            }
        return json.dumps(summary)

    @mcp.tool()
    def undo() -> str:
        """Undo the last edit."""
        if not state["document"].undo():
            return json.dumps({"success": False, "error": "Nothing to undo"})
        _persist()
        return json.dumps({"success": True})

    @mcp.tool()
    def redo() -> str:
        """Redo the last undone edit."""
        if not state["document"].redo():
            return json.dumps({"success": False, "error": "Nothing to redo"})
        _persist()
        return json.dumps({"success": True})

    def _edited(changed: bool, error: str) -> str:
        if not changed:
            return json.dumps({"success": False, "error": error})
        _persist()
        return json.dumps({"success": True})

    @mcp.tool()
    def detach_instance(instance_id: str) -> str:
        """Replace an instance with a plain frame holding copies of its resolved children."""
        changed = state["document"].detach_instance(instance_id)
        return _edited(changed, f'Instance not found: "{instance_id}"')

    @mcp.tool()
    def reset_override(path: str, property: str | None = None) -> str:
        """Drop the override at ``instance/descendant`` (or just one of its properties)."""
        changed = state["document"].reset_descendant_override(path, property)
        return _edited(changed, f'No override at "{path}"')

    @mcp.tool()
    def reset_slot(instance_id: str, slot_id: str) -> str:
        """Put an instance's slot back to the component's placeholder content."""
        changed = state["document"].reset_slot_content(instance_id, slot_id)
        return _edited(changed, f'Slot "{slot_id}" of "{instance_id}" has no substituted content')

    @mcp.tool()
    def open_document(path_or_template: str) -> str:
        """Open a document file, or ``new`` for an empty document."""
        if path_or_template == NEW_DOCUMENT:
            state["document"], state["path"] = new_document(), None
        else:
            try:
                state["document"], state["path"] = load_document(path_or_template), path_or_template
            except DocumentFormatError as exc:
                return json.dumps({"error": str(exc)})
        opened: Document = state["document"]
        return json.dumps({"success": True, "path": state["path"], "nodeCount": len(opened.store.nodes_by_id)})

    return mcp
