"""
Structured error types for pipespine.

Every failure a query can hit is raised as a :class:`PipespineError` subclass
with a category, a machine-readable ``code`` and an :class:`ErrorContext`.
The orchestrator catches them at the per-query boundary and turns them into a
failed result, so nothing below it builds error responses by hand.

Hierarchy::

    PipespineError (INTERNAL)
    ├── ValidationError   VALIDATION_FAILED
    ├── ConfigError       CONFIG
    ├── TransportError    TRANSPORT
    ├── UpstreamError     UPSTREAM
    ├── ParseError        PARSE
    └── DataError         NO_DATA | NO_TIME_KEY | TIME_KEY_NOT_FOUND | NO_TIME_SERIES

Context must never carry tokens; URLs go through
:func:`pipespine.sources.pipes.redact_url` first.

Examples:
    >>> error = DataError("no time key", code="NO_TIME_KEY")
    >>> error.category
    <ErrorCategory.DATA: 'DATA'>
    >>> error.with_context(pipe_name="top_pages").context.pipe_name
    'top_pages'
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Failure family, used for routing and log filtering."""

    VALIDATION = "VALIDATION"
    NETWORK = "NETWORK"
    SOURCE = "SOURCE"  # upstream answered with an ``error`` field
    DATA = "DATA"
    PARSE = "PARSE"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Where the error happened. Unset fields are left out of :meth:`to_dict`."""

    pipe_name: str | None = None
    ref_id: str | None = None
    column: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "metadata" and getattr(self, f.name) is not None
        }
        out.update(self.metadata)
        return out


class PipespineError(Exception):
    """
    Base exception for all pipespine errors.

    Subclasses set ``default_category`` and ``default_code``. A raise site may
    pass its own ``code``; :class:`DataError` uses several.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_code: str = "INTERNAL"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PipespineError:
        """Attach context and return ``self``, so it chains onto ``raise``.

        Names that are not :class:`ErrorContext` fields land in ``metadata``.
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "category": self.category.value,
        }
        if context := self.context.to_dict():
            out["context"] = context
        if self.cause is not None:
            out["cause"] = str(self.cause)
        return out

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code})"


class ValidationError(PipespineError):
    """The query as sent cannot run: missing pipe name, bad placeholder, bad range."""

    default_category = ErrorCategory.VALIDATION
    default_code = "VALIDATION_FAILED"

    def __init__(self, message: str, *, field: str | None = None, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        if self.field:
            out["field"] = self.field
        if self.value is not None:
            out["value"] = repr(self.value)
        return out


class ConfigError(PipespineError):
    default_category = ErrorCategory.CONFIG
    default_code = "CONFIG"


class TransportError(PipespineError):
    """Building the request, connecting, timing out, or a non-2xx status."""

    default_category = ErrorCategory.NETWORK
    default_code = "TRANSPORT"


class UpstreamError(PipespineError):
    default_category = ErrorCategory.SOURCE
    default_code = "UPSTREAM"


class ParseError(PipespineError):
    """Malformed JSON, or a cell whose scalar kind contradicts its column type."""

    default_category = ErrorCategory.PARSE
    default_code = "PARSE"


class DataError(PipespineError):
    """The response parsed but cannot be shaped into frames."""

    default_category = ErrorCategory.DATA
    default_code = "NO_DATA"


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PipespineError",
    "ValidationError",
    "ConfigError",
    "TransportError",
    "UpstreamError",
    "ParseError",
    "DataError",
]
