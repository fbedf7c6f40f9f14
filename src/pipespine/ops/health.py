"""
Health and pipe listing operations.

Both call the pipes root, ``GET {host}/v0/pipes/``. Health never fails as an
operation: transport, decode and upstream errors are reported as an
``unhealthy`` status carrying the error message.
"""

from __future__ import annotations

from pipespine.core.errors import PipespineError
from pipespine.core.logging import get_logger
from pipespine.ops.context import QueryContext
from pipespine.ops.responses import HealthStatus
from pipespine.ops.result import OperationResult, start_timer
from pipespine.sources.models import PipeSummary

logger = get_logger(__name__)


def check_health(ctx: QueryContext) -> OperationResult[HealthStatus]:
    """Probe the pipes endpoint."""
    timer = start_timer()
    host = ctx.settings.host

    with ctx.log_context():
        try:
            body = ctx.client.status()
            message = str(body["error"]) if body.get("error") else None
            code = "UPSTREAM"
        except PipespineError as exc:
            message, code = exc.message, exc.code

        if message is not None:
            logger.warning("health.unhealthy", host=host, code=code, error=message)
            return OperationResult.ok(
                HealthStatus(status="unhealthy", message=message, host=host),
                elapsed_ms=timer.elapsed_ms,
            )

    pipes = body.get("pipes")
    return OperationResult.ok(
        HealthStatus(
            status="healthy",
            message="OK",
            host=host,
            pipe_count=len(pipes) if isinstance(pipes, list) else None,
        ),
        elapsed_ms=timer.elapsed_ms,
    )


def list_pipes(ctx: QueryContext) -> OperationResult[list[PipeSummary]]:
    """Pipes published as endpoints."""
    timer = start_timer()
    with ctx.log_context():
        try:
            pipes = ctx.client.list_pipes()
        except PipespineError as exc:
            logger.warning("pipes.list_failed", code=exc.code, error=exc.message)
            return OperationResult.from_error(exc, elapsed_ms=timer.elapsed_ms)
    return OperationResult.ok(pipes, elapsed_ms=timer.elapsed_ms)
