"""
Typed response objects for operations.

Each dataclass is the payload of one operation inside the generic
:class:`~pipespine.ops.result.OperationResult` envelope. Query results carry
:class:`~pipespine.transform.frames.Frame` lists directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class HealthStatus:
    """Outcome of probing the pipes endpoint."""

    status: str = "healthy"  # "healthy" or "unhealthy"
    message: str = "OK"
    host: str = ""
    pipe_count: int | None = None


@dataclass(slots=True)
class VariableValues:
    """Values of one column in row order, rendered as text; duplicates are kept."""

    key: str
    values: list[str] = field(default_factory=list)
