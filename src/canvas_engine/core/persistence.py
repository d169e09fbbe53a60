"""Document files.

A document is stored as JSON::

    {"version": 1, "activeTheme": "light", "variables": [...], "nodes": [...]}

where ``nodes`` is the nested tree of top-level nodes.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from canvas_engine.core.document import Document
from canvas_engine.core.errors import CanvasEngineError, DocumentFormatError
from canvas_engine.core.history import History
from canvas_engine.core.store import FlatStore, integrity_errors
from canvas_engine.core.variables import VariableTable
from canvas_engine.models import SceneNode, Variable
from canvas_engine.settings import get_settings

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def new_document(active_theme: str | None = None, history_limit: int | None = None) -> Document:
    settings = get_settings()
    return Document(
        variables=VariableTable(active_theme=active_theme or settings.default_theme),
        history=History(history_limit or settings.history_limit),
    )


def document_from_data(data: Any, history_limit: int | None = None) -> Document:
    if not isinstance(data, dict):
        raise DocumentFormatError("Document must be a JSON object")
    version = data.get("version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise DocumentFormatError(f"Unsupported document version: {version}")
    try:
        nodes = [SceneNode.model_validate(node) for node in data.get("nodes") or []]
        variables = [Variable.model_validate(item) for item in data.get("variables") or []]
    except ValidationError as exc:
        raise DocumentFormatError(f"Invalid document: {exc}") from exc
    try:
        store = FlatStore.from_tree(nodes)
    except CanvasEngineError as exc:
        raise DocumentFormatError(f"Invalid document: {exc}") from exc

    problems = integrity_errors(store)
    if problems:
        raise DocumentFormatError(f"Inconsistent document: {problems[0]}")

    document = new_document(data.get("activeTheme"), history_limit)
    document.variables.set_variables(variables)
    document.restore(store)
    return document


def document_to_data(document: Document) -> dict[str, Any]:
    with document.lock:
        return {
            "version": FORMAT_VERSION,
            "activeTheme": document.variables.active_theme,
            "variables": [v.model_dump(by_alias=True) for v in document.variables.variables],
            "nodes": document.store.to_tree(),
        }


def load_document(path: str | Path, history_limit: int | None = None) -> Document:
    """Read a document file. Loading starts a fresh baseline with empty history."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise DocumentFormatError(f"Cannot read {path}: {exc}") from exc
    document = document_from_data(data, history_limit)
    logger.info("Loaded %s (%d nodes)", path, len(document.store.nodes_by_id))
    return document


def save_document(document: Document, path: str | Path) -> None:
    path = Path(path)
    path.write_text(json.dumps(document_to_data(document), indent=2) + "\n", encoding="utf-8")
    logger.info("Saved %s", path)
