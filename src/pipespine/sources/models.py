"""
Wire models for the analytics API and for inbound host queries.

Pydantic parses both directions of JSON so that malformed payloads fail at
the edge with a precise message instead of deep inside the transform engine.
Unknown fields are ignored everywhere.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pipespine.transform.types import ColumnMeta


# ------------------------------------------------------------------ #
# Upstream response
# ------------------------------------------------------------------ #


class PipeColumn(BaseModel):
    """One ``meta`` entry: column name and declared type."""

    model_config = ConfigDict(extra="ignore")

    name: str
    type: str


class PipeResponse(BaseModel):
    """Body of ``GET /v0/pipes/{pipe}.json``.

    When ``error`` is set the other fields are not consumed.
    """

    model_config = ConfigDict(extra="ignore")

    error: str | None = None
    meta: list[PipeColumn] = Field(default_factory=list)
    data: list[dict[str, Any]] = Field(default_factory=list)
    rows: int | None = None
    rows_before_limit_at_least: int | None = None
    statistics: dict[str, Any] | None = None

    @property
    def columns(self) -> list[ColumnMeta]:
        return [ColumnMeta(name=c.name, type=c.type) for c in self.meta]


class PipeSummary(BaseModel):
    """A pipe published as an API endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str


# ------------------------------------------------------------------ #
# Inbound query
# ------------------------------------------------------------------ #


class TimeRange(BaseModel):
    """Requested dashboard time range.

    Accepts ISO-8601 strings or epoch numbers (seconds, or milliseconds for
    large values). Naive datetimes are taken as UTC.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_: datetime = Field(alias="from")
    to: datetime

    @field_validator("from_", "to")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=UTC)


class QuerySpec(BaseModel):
    """One query as sent by the host.

    Attributes:
        ref_id: Host-side identifier results are keyed by.
        pipe_name: Pipe to call (required; checked by the orchestrator).
        params: Pipe parameters, possibly containing time placeholders.
        time_key: Column to use as the time axis; inferred when empty.
        format: ``timeseries`` (time-aligned frames), ``table`` or ``logs``.
        data_keys: Numeric columns to chart; all of them when empty.
        label_keys: Text columns naming the series of each data key, by
            position.
        variable_key: Column whose values feed a dashboard variable.

    ``dataKeys`` and ``labelKeys`` may be sent as lists or as
    comma-separated strings.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ref_id: str = Field(default="A", alias="refId")
    pipe_name: str = Field(default="", alias="pipeName")
    params: dict[str, str] = Field(default_factory=dict)
    time_key: str | None = Field(default=None, alias="timeKey")
    format: Literal["timeseries", "table", "logs"] = "timeseries"
    data_keys: list[str] = Field(default_factory=list, alias="dataKeys")
    label_keys: list[str] = Field(default_factory=list, alias="labelKeys")
    variable_key: str = Field(default="", alias="variableKey")

    @field_validator("data_keys", "label_keys", mode="before")
    @classmethod
    def split_keys(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, list):
            return [k.strip() for k in v if isinstance(k, str) and k.strip()]
        return v

    @field_validator("params", mode="before")
    @classmethod
    def stringify_params(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): "" if val is None else str(val) for k, val in v.items()}
        return v

    @field_validator("pipe_name", "time_key", "variable_key", mode="before")
    @classmethod
    def strip_names(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v
