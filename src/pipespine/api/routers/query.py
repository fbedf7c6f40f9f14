"""
Query router — run pipes and return frames per ``refId``.

Endpoints:
    POST /query        Run a batch of queries over one time range
    POST /variables    Values of one column, for dashboard variables

A batch always answers 200: each ``refId`` maps to its own success or
failure envelope, and one failing query never hides the others.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from pipespine.api.deps import QueryCtx
from pipespine.api.errors import handle_error
from pipespine.api.schemas import QueryRequest, VariableRequest
from pipespine.ops.query import find_variable_values, run_batch

router = APIRouter()


@router.post("/query", response_model=None)
def query(body: QueryRequest, ctx: QueryCtx):
    """Run every query in the body."""
    results = run_batch(ctx, body.queries, body.range)
    return {"results": {ref_id: result.to_dict() for ref_id, result in results.items()}}


@router.post("/variables", response_model=None)
def variables(body: VariableRequest, ctx: QueryCtx, request: Request):
    """Values of ``query.variableKey`` as text."""
    result = find_variable_values(ctx, body.query, body.range)
    if not result.success:
        return handle_error(result, request)
    return result.to_dict()
