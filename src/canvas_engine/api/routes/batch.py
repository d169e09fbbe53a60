from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from canvas_engine.api.dependencies import get_document
from canvas_engine.api.schemas import BatchDesignRequest
from canvas_engine.core.batch import execute_batch
from canvas_engine.core.document import Document
from canvas_engine.models import BatchSuccess

router = APIRouter(prefix="/batch-design", tags=["batch"])


@router.post("")
def batch_design(
    body: BatchDesignRequest,
    document: Document = Depends(get_document),
) -> JSONResponse:
    """Apply an operation script; a rejected or rolled-back script answers 422."""
    result = execute_batch(document, body.operations)
    code = 200 if isinstance(result, BatchSuccess) else 422
    return JSONResponse(content=result.to_payload(), status_code=code)
