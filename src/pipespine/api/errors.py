"""
Error handling — maps ops-layer errors to RFC 7807 responses.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from pipespine.api.schemas import ProblemDetail
from pipespine.core.logging import get_logger
from pipespine.ops.result import OperationResult

logger = get_logger(__name__)

# Every query-level failure is a bad request; only unhandled faults are 500.
ERROR_CODE_TO_STATUS: dict[str, int] = {
    "VALIDATION_FAILED": 400,
    "CONFIG": 400,
    "TRANSPORT": 400,
    "UPSTREAM": 400,
    "PARSE": 400,
    "NO_DATA": 400,
    "NO_TIME_KEY": 400,
    "TIME_KEY_NOT_FOUND": 400,
    "NO_TIME_SERIES": 400,
    "INTERNAL": 400,
}


def status_for_error_code(code: str) -> int:
    """Resolve an ops error code to HTTP status, defaulting to 500."""
    return ERROR_CODE_TO_STATUS.get(code, 500)


def problem_response(
    *,
    status: int,
    title: str,
    code: str = "",
    detail: str = "",
    instance: str = "",
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(title=title, status=status, code=code, detail=detail, instance=instance)
    return JSONResponse(
        status_code=status,
        content=body.model_dump(),
        media_type="application/problem+json",
    )


def handle_error(result: OperationResult, request: Request) -> JSONResponse:
    """Convert a failed ``OperationResult`` into a Problem Details response."""
    code = result.error.code if result.error else "INTERNAL"
    return problem_response(
        status=status_for_error_code(code),
        title=result.error.message if result.error else "Operation failed",
        code=code,
        instance=str(request.url.path),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: 500 with a ProblemDetail body."""
    logger.exception("api.unhandled_error", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        code="INTERNAL",
        detail="An unexpected error occurred.",
        instance=str(request.url.path),
    )
