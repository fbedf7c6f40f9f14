"""
HTTP client for the analytics pipes API.

One :class:`PipeClient` per connector instance. It owns a single
``httpx.Client`` (and so the connection pool) for its lifetime; ``close()``
releases idle connections. Each call is one blocking request: no retries, no
backoff. Failures are raised as typed errors:

    =============================  ==================
    What happened                  Raised
    =============================  ==================
    connect / timeout / protocol   TransportError
    body not JSON / wrong shape    ParseError
    body has ``error``             UpstreamError
    HTTP >= 400 without ``error``  TransportError
    =============================  ==================

Usage:
    with PipeClient(settings) as client:
        response, meta = client.fetch("top_pages", {"limit": "10"})
        pipes = client.list_pipes()
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from pipespine.core.errors import (
    ConfigError,
    ParseError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from pipespine.core.logging import get_logger
from pipespine.core.settings import DatasourceSettings
from pipespine.sources.models import PipeResponse, PipeSummary

logger = get_logger(__name__)

_REDACTED = "REDACTED"

PIPE_NAME_RE = re.compile(r"[A-Za-z0-9_]+")


def check_pipe_name(pipe_name: str) -> str:
    """Reject names that could leave ``/v0/pipes/`` or add query parameters."""
    if not PIPE_NAME_RE.fullmatch(pipe_name):
        raise ValidationError(
            "pipe name may only contain letters, digits and underscores",
            field="pipeName",
            value=pipe_name,
        )
    return pipe_name


def redact_url(url: httpx.URL | str) -> str:
    """Drop the auth token from a URL before it is logged or attached to errors."""
    url = httpx.URL(str(url))
    if "token" not in url.params:
        return str(url)
    return str(url.copy_set_param("token", _REDACTED))


@dataclass
class FetchMetadata:
    """
    Metadata about one pipe call.

    Used for logging and returned alongside frames so the host can show
    row counts and upstream statistics.
    """

    pipe_name: str
    url: str
    fetched_at: datetime = field(default_factory=datetime.now)
    duration_ms: float | None = None
    http_status: int | None = None
    row_count: int | None = None
    rows_before_limit_at_least: int | None = None
    statistics: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {
            "pipe_name": self.pipe_name,
            "url": self.url,
            "fetched_at": self.fetched_at.isoformat(),
        }
        for attr in ["duration_ms", "http_status", "row_count",
                     "rows_before_limit_at_least", "statistics"]:
            val = getattr(self, attr)
            if val is not None:
                result[attr] = val
        return result


class PipeClient:
    """Synchronous client for ``{host}/v0/pipes/``.

    Args:
        settings: Connector settings; ``host`` and ``token`` are required.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).

    Raises:
        ConfigError: ``host`` or ``token`` is missing.
    """

    def __init__(
        self,
        settings: DatasourceSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ):
        if not settings.host:
            raise ConfigError("host is required")
        token = settings.token.get_secret_value()
        if not token:
            raise ConfigError("token is required")

        self._settings = settings
        self._auth_params: dict[str, str] = {}
        headers: dict[str, str] = {}
        if settings.auth_mode == "header":
            headers["Authorization"] = f"Bearer {token}"
        else:
            self._auth_params["token"] = token

        client_kwargs: dict[str, Any] = {
            "base_url": settings.pipes_url,
            "headers": headers,
            "transport": transport,
        }
        if settings.timeout is not None:
            client_kwargs["timeout"] = settings.timeout
        self._http = httpx.Client(**client_kwargs)

    # ── Lifecycle ────────────────────────────────────────────────────

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> PipeClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ── Requests ─────────────────────────────────────────────────────

    def _get_json(self, path: str, params: dict[str, str] | None = None) -> tuple[Any, httpx.Response]:
        query = {**(params or {}), **self._auth_params}
        try:
            response = self._http.get(path, params=query)
        except httpx.HTTPError as exc:
            url = redact_url(exc.request.url) if _has_request(exc) else path
            raise TransportError(f"http request failed: {exc}", cause=exc).with_context(url=url)

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            if response.is_error:
                raise TransportError(
                    f"upstream returned HTTP {response.status_code}"
                ).with_context(url=redact_url(response.url), http_status=response.status_code)
            raise ParseError(f"response is not valid JSON: {exc}", cause=exc).with_context(
                url=redact_url(response.url), http_status=response.status_code,
            )
        return body, response

    def fetch(
        self,
        pipe_name: str,
        params: dict[str, str] | None = None,
    ) -> tuple[PipeResponse, FetchMetadata]:
        """Call ``{pipe_name}.json`` and return the decoded body plus metadata."""
        start = time.perf_counter()
        body, response = self._get_json(f"{check_pipe_name(pipe_name)}.json", params)

        meta = FetchMetadata(
            pipe_name=pipe_name,
            url=redact_url(response.url),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            http_status=response.status_code,
        )

        if isinstance(body, dict) and body.get("error"):
            raise UpstreamError(str(body["error"])).with_context(
                pipe_name=pipe_name, url=meta.url, http_status=response.status_code,
            )
        if response.is_error:
            raise TransportError(
                f"upstream returned HTTP {response.status_code}"
            ).with_context(pipe_name=pipe_name, url=meta.url, http_status=response.status_code)

        try:
            parsed = PipeResponse.model_validate(body)
        except PydanticValidationError as exc:
            raise ParseError(f"unexpected response shape: {exc}", cause=exc).with_context(
                pipe_name=pipe_name, url=meta.url,
            )

        meta.row_count = len(parsed.data)
        meta.rows_before_limit_at_least = parsed.rows_before_limit_at_least
        meta.statistics = parsed.statistics
        logger.debug("pipe.fetched", **meta.to_dict())
        return parsed, meta

    def status(self) -> dict[str, Any]:
        """Raw body of the pipes root, used for health checks."""
        body, response = self._get_json("")
        if not isinstance(body, dict):
            raise ParseError("unexpected status response").with_context(url=redact_url(response.url))
        return body

    def list_pipes(self) -> list[PipeSummary]:
        """Pipes published as endpoints, as ``{id, name}``."""
        body = self.status()
        if body.get("error"):
            raise UpstreamError(str(body["error"]))
        try:
            return [
                PipeSummary.model_validate(p)
                for p in body.get("pipes") or []
                if isinstance(p, dict) and p.get("type") == "endpoint"
            ]
        except PydanticValidationError as exc:
            raise ParseError(f"unexpected pipe listing: {exc}", cause=exc)


def _has_request(exc: httpx.HTTPError) -> bool:
    try:
        exc.request
    except RuntimeError:
        return False
    return True
