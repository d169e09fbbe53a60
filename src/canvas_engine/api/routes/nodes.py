from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query

from canvas_engine.api.dependencies import get_document
from canvas_engine.core.document import Document
from canvas_engine.core.serialize import batch_get

router = APIRouter(prefix="/nodes", tags=["nodes"])


@router.get("")
def list_nodes(
    document: Document = Depends(get_document),
    parent_id: Annotated[str | None, Query(alias="parentId")] = None,
    type: str | None = None,
    name: str | None = None,
    reusable: bool | None = None,
    depth: Annotated[int, Query(ge=0)] = 1,
    search_depth: Annotated[int | None, Query(alias="searchDepth", ge=0)] = None,
    resolve_variables: Annotated[bool, Query(alias="resolveVariables")] = False,
) -> dict[str, Any]:
    """Top-level (or ``parentId``) children, or a pattern search when filters are given."""
    pattern = {k: v for k, v in {"type": type, "name": name, "reusable": reusable}.items() if v is not None}
    return batch_get(
        document,
        patterns=[pattern] if pattern else None,
        parent_id=parent_id,
        read_depth=depth,
        search_depth=search_depth,
        resolve_variables=resolve_variables,
    )


@router.get("/{node_id:path}")
def get_node(
    node_id: str,
    document: Document = Depends(get_document),
    depth: Annotated[int, Query(ge=0)] = 1,
    resolve_variables: Annotated[bool, Query(alias="resolveVariables")] = False,
) -> dict[str, Any]:
    """One node; ``instance/descendant`` paths read through the instance."""
    payload = batch_get(document, node_ids=[node_id], read_depth=depth, resolve_variables=resolve_variables)
    if not payload["nodes"]:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
    result: dict[str, Any] = payload["nodes"][0]
    return result
