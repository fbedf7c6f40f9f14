"""pipespine core: errors, logging, and settings shared by every layer.

Architecture::

    errors.py     Structured error hierarchy (PipespineError and friends)
    logging.py    structlog configuration + get_logger
    settings.py   DatasourceSettings (pydantic-settings, PIPESPINE_ prefix)
"""

from pipespine.core.errors import (
    ConfigError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ParseError,
    PipespineError,
    TransportError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    "ConfigError",
    "DataError",
    "ErrorCategory",
    "ErrorContext",
    "ParseError",
    "PipespineError",
    "TransportError",
    "UpstreamError",
    "ValidationError",
]
