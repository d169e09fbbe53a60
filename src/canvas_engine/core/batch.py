"""Transactional batch execution.

A batch runs against a structural copy of the document's store. The primary
store is touched exactly once, on success, by ``Document.commit``; any error
abandons the copy and leaves the document as it was.
"""

from __future__ import annotations

import json
import logging

from canvas_engine.core.document import Document
from canvas_engine.core.errors import ExecutionError, ScriptParseError
from canvas_engine.core.executor import ExecutionContext, execute_operation, serialize_created_nodes
from canvas_engine.core.script import parse_operations
from canvas_engine.models import BatchFailure, BatchResult, BatchSuccess

logger = logging.getLogger(__name__)


def execute_batch(document: Document, script: str) -> BatchResult:
    """Run ``script`` against ``document``; parse and execution errors become failures."""
    if not script or not script.strip():
        return BatchFailure(error="No operations provided")

    try:
        operations = parse_operations(script)
    except ScriptParseError as exc:
        logger.info("Rejected script: %s", exc)
        return BatchFailure(error=f"Parse error: {exc}")

    with document.lock:
        ctx = ExecutionContext(
            store=document.working_copy(),
            variables=document.variables,
            measurer=document.measurer,
            layout=document.layout,
            default_theme=document.variables.active_theme,
        )
        completed: list[str] = []
        try:
            for op in operations:
                execute_operation(op, ctx)
                completed.append(op.describe())
        except ExecutionError as exc:
            logger.info("Rolled back batch after %d of %d operations: %s", len(completed), len(operations), exc)
            return BatchFailure(
                error=f"Execution error: {exc}",
                completed_operations=completed,
                total_operations=len(operations),
            )
        except Exception as exc:
            line = operations[len(completed)].line
            logger.exception("Unexpected failure on line %d; rolled back batch", line)
            return BatchFailure(
                error=f"Execution error: Line {line}: {exc}",
                completed_operations=completed,
                total_operations=len(operations),
            )

        document.commit(ctx.store)
        logger.info("Committed batch of %d operations (%d nodes created)", len(completed), len(ctx.created_node_ids))
        return BatchSuccess(
            operations_executed=len(completed),
            created_nodes=serialize_created_nodes(ctx),
            issues=ctx.issues or None,
        )


def batch_design(document: Document, script: str) -> str:
    """Tool boundary: always returns a JSON payload, never raises."""
    try:
        result = execute_batch(document, script)
    except Exception as exc:
        logger.exception("Unexpected failure while executing batch")
        result = BatchFailure(error=f"Execution error: {exc}")
    return json.dumps(result.to_payload())
