from fastapi import APIRouter, Depends, HTTPException

from canvas_engine.api.dependencies import get_document
from canvas_engine.api.schemas import HistoryResponse
from canvas_engine.core.document import Document

router = APIRouter(tags=["history"])


def _history_response(document: Document) -> HistoryResponse:
    return HistoryResponse(success=True, can_undo=document.history.can_undo, can_redo=document.history.can_redo)


@router.post("/undo", response_model=HistoryResponse, response_model_by_alias=True)
def undo(document: Document = Depends(get_document)) -> HistoryResponse:
    if not document.undo():
        raise HTTPException(status_code=409, detail="Nothing to undo")
    return _history_response(document)


@router.post("/redo", response_model=HistoryResponse, response_model_by_alias=True)
def redo(document: Document = Depends(get_document)) -> HistoryResponse:
    if not document.redo():
        raise HTTPException(status_code=409, detail="Nothing to redo")
    return _history_response(document)
