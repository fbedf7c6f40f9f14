"""
API schemas: request bodies and the RFC 7807 error envelope.

Queries inside a request body stay plain dicts: a malformed query fails as
its own ``VALIDATION_FAILED`` result instead of rejecting the batch with 422.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from pipespine.sources.models import TimeRange


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Example:
        {
            "type": "about:blank",
            "title": "variable key is required",
            "status": 400,
            "code": "VALIDATION_FAILED",
            "instance": "/api/v1/variables"
        }
    """

    type: str = Field(default="about:blank")
    title: str
    status: int
    code: str = ""
    detail: str = ""
    instance: str = ""


class QueryRequest(BaseModel):
    """Body of ``POST /query``: one time range, any number of queries."""

    range: TimeRange
    queries: list[dict[str, Any]] = Field(default_factory=list)


class VariableRequest(BaseModel):
    """Body of ``POST /variables``."""

    range: TimeRange
    query: dict[str, Any]
