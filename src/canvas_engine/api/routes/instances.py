from fastapi import APIRouter, Depends, HTTPException

from canvas_engine.api.dependencies import get_document
from canvas_engine.api.schemas import HistoryResponse
from canvas_engine.core.document import Document

router = APIRouter(prefix="/instances", tags=["instances"])


def _edited(document: Document) -> HistoryResponse:
    return HistoryResponse(success=True, can_undo=document.history.can_undo, can_redo=document.history.can_redo)


@router.post("/{instance_id}/detach", response_model=HistoryResponse, response_model_by_alias=True)
def detach_instance(instance_id: str, document: Document = Depends(get_document)) -> HistoryResponse:
    """Replace the instance with a plain frame holding copies of its resolved children."""
    if not document.detach_instance(instance_id):
        raise HTTPException(status_code=404, detail=f"Instance not found: {instance_id}")
    return _edited(document)


@router.delete("/{instance_id}/slots/{slot_id}", response_model=HistoryResponse, response_model_by_alias=True)
def reset_slot(instance_id: str, slot_id: str, document: Document = Depends(get_document)) -> HistoryResponse:
    if not document.reset_slot_content(instance_id, slot_id):
        raise HTTPException(status_code=404, detail=f"No substituted content for slot {slot_id} of {instance_id}")
    return _edited(document)


@router.delete("/{path:path}/override", response_model=HistoryResponse, response_model_by_alias=True)
def reset_override(
    path: str,
    document: Document = Depends(get_document),
    property: str | None = None,
) -> HistoryResponse:
    """Drop the override at ``instance/descendant/...``, or one property of it."""
    if not document.reset_descendant_override(path, property):
        raise HTTPException(status_code=404, detail=f"No override at {path}")
    return _edited(document)
