"""
Request-scoped context for operations.

Every operation function receives a :class:`QueryContext` as its first
argument. The context carries the pipe client, the connector settings and
the identity of the caller; it holds no per-query state, so one context can
be shared by every query in a batch.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from pipespine.core.logging import LogContext
from pipespine.core.settings import DatasourceSettings
from pipespine.sources.pipes import PipeClient


@dataclass
class QueryContext:
    """Context passed to every operation function.

    Attributes:
        client: Open :class:`PipeClient` for the configured host.
        settings: Connector settings (shape, null policy, workers, ...).
        request_id: Unique ID for this invocation (auto-generated).
        caller: Origin of the request: ``"api"``, ``"cli"`` or ``"sdk"``.
        metadata: Extra key/value pairs bound to every log event.
    """

    client: PipeClient
    settings: DatasourceSettings
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    caller: str = "sdk"
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: DatasourceSettings, **kwargs: Any) -> QueryContext:
        """Build a context with a fresh client. The caller closes ``ctx.client``."""
        return cls(client=PipeClient(settings), settings=settings, **kwargs)

    def log_context(self, **extra: Any) -> LogContext:
        """Bind request id, caller and metadata (plus ``extra``) for a block."""
        return LogContext(**{**self.metadata, "request_id": self.request_id, "caller": self.caller, **extra})
