"""
FastAPI dependency injection — shared singletons and per-request factories.

Usage in routers::

    from pipespine.api.deps import QueryCtx

    @router.get("/pipes")
    def pipes(ctx: QueryCtx):
        ...
"""

from __future__ import annotations

import uuid
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request

from pipespine.core.settings import DatasourceSettings
from pipespine.ops.context import QueryContext

# ── Settings (singleton) ─────────────────────────────────────────────────


@lru_cache(maxsize=1)
def get_settings() -> DatasourceSettings:
    """Cached settings, loaded once per process."""
    return DatasourceSettings()


# ── Query context (per-request) ──────────────────────────────────────────


def get_query_context(request: Request) -> QueryContext:
    """Build a :class:`QueryContext` around the app-wide pipe client."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    return QueryContext(
        client=request.app.state.client,
        settings=request.app.state.settings,
        request_id=request_id,
        caller="api",
    )


# ── Convenience type aliases ─────────────────────────────────────────────

QueryCtx = Annotated[QueryContext, Depends(get_query_context)]
