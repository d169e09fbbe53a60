from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BatchDesignRequest(BaseModel):
    operations: str


class HealthResponse(BaseModel):
    status: str = "ok"


class HistoryResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    can_undo: bool
    can_redo: bool
