"""
Health router — upstream reachability and pipe discovery.

Endpoints:
    GET /health    200 when the pipes API answers cleanly, 503 otherwise
    GET /pipes     Pipes published as endpoints
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pipespine.api.deps import QueryCtx
from pipespine.api.errors import handle_error
from pipespine.ops.health import check_health, list_pipes

router = APIRouter()


@router.get("/health", response_model=None)
def health(ctx: QueryCtx):
    result = check_health(ctx)
    healthy = result.data is not None and result.data.status == "healthy"
    return JSONResponse(content=result.to_dict(), status_code=200 if healthy else 503)


@router.get("/pipes", response_model=None)
def pipes(ctx: QueryCtx, request: Request):
    result = list_pipes(ctx)
    if not result.success:
        return handle_error(result, request)
    return result.to_dict()
