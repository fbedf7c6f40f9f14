"""
Operation result envelope.

Operations in :mod:`pipespine.ops` return an :class:`OperationResult` rather
than raising. A failed query is reported back to the host as data, so one bad
``refId`` never takes its siblings down. Failures carry a machine-readable
``code``, a readable ``message`` and the status the host should surface.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Generic, TypeVar

from pipespine.core.errors import ErrorCategory, PipespineError

T = TypeVar("T")

BAD_REQUEST = 400


@dataclass(frozen=True, slots=True)
class OperationError:
    """Why an operation failed.

    ``details`` holds the error context (pipe, column, url) and is omitted
    from the serialized form when empty.
    """

    code: str
    message: str
    category: ErrorCategory | None = None
    status: int = BAD_REQUEST
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message, "status": self.status}
        if self.details:
            out["details"] = self.details
        return out


@dataclass
class OperationResult(Generic[T]):
    """Success with ``data``, or failure with ``error``; never both."""

    success: bool
    data: T | None = None
    error: OperationError | None = None
    elapsed_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: T, *, elapsed_ms: float = 0.0, metadata: dict[str, Any] | None = None) -> OperationResult[T]:
        return cls(True, data=data, elapsed_ms=elapsed_ms, metadata=dict(metadata or {}))

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        *,
        category: ErrorCategory | None = None,
        status: int = BAD_REQUEST,
        details: dict[str, Any] | None = None,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        error = OperationError(code, message, category, status, dict(details or {}))
        return cls(False, error=error, elapsed_ms=elapsed_ms, metadata=dict(metadata or {}))

    @classmethod
    def from_error(
        cls,
        error: PipespineError,
        *,
        elapsed_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[T]:
        """Failed result carrying the code, category and context of ``error``."""
        return cls.fail(
            error.code,
            error.message,
            category=error.category,
            details=error.context.to_dict(),
            elapsed_ms=elapsed_ms,
            metadata=metadata,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form; empty sections are left out."""
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = _jsonable(self.data)
        if self.error is not None:
            out["error"] = self.error.to_dict()
        if self.elapsed_ms:
            out["elapsed_ms"] = round(self.elapsed_ms, 2)
        if self.metadata:
            out["metadata"] = self.metadata
        return out


def _jsonable(value: Any) -> Any:
    """Frames, pydantic models and lists of either, as plain JSON values."""
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True)
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value


class Stopwatch:
    __slots__ = ("_started",)

    def __init__(self) -> None:
        self._started = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000


def start_timer() -> Stopwatch:
    """Start timing an operation; read ``elapsed_ms`` when it finishes."""
    return Stopwatch()
