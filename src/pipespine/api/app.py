"""
FastAPI application factory.

``create_app()`` wires the pipe client lifespan, routers and error handlers
into a single ``FastAPI`` instance. The app owns one :class:`PipeClient`
for its whole life, so every request shares one connection pool.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from pipespine import __version__
from pipespine.api.deps import get_settings
from pipespine.api.errors import unhandled_exception_handler
from pipespine.core.logging import configure_logging, get_logger
from pipespine.core.settings import DatasourceSettings
from pipespine.sources.pipes import PipeClient

API_PREFIX = "/api/v1"

log = get_logger("pipespine.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the pipe client on startup, close it on shutdown."""
    settings: DatasourceSettings = app.state.settings
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    app.state.client = PipeClient(settings, transport=app.state.transport)
    log.info("api.started", version=app.version, host=settings.host, auth_mode=settings.auth_mode)
    try:
        yield
    finally:
        app.state.client.close()
        log.info("api.stopped")


def create_app(
    settings: DatasourceSettings | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : DatasourceSettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    transport : httpx.BaseTransport | None
        Transport for the pipe client; tests pass ``httpx.MockTransport``.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="pipespine",
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{API_PREFIX}/docs",
        openapi_url=f"{API_PREFIX}/openapi.json",
    )

    app.state.settings = settings
    app.state.transport = transport
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_exception_handler(Exception, unhandled_exception_handler)

    from pipespine.api.routers import health, query

    app.include_router(query.router, prefix=API_PREFIX, tags=["query"])
    app.include_router(health.router, prefix=API_PREFIX, tags=["health"])

    return app
