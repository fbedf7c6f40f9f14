"""
Upstream access: the pipes HTTP client and its wire models.
"""

from pipespine.sources.models import (
    PipeColumn,
    PipeResponse,
    PipeSummary,
    QuerySpec,
    TimeRange,
)
from pipespine.sources.pipes import FetchMetadata, PipeClient, check_pipe_name, redact_url

__all__ = [
    "FetchMetadata",
    "PipeClient",
    "PipeColumn",
    "PipeResponse",
    "PipeSummary",
    "QuerySpec",
    "TimeRange",
    "check_pipe_name",
    "redact_url",
]
