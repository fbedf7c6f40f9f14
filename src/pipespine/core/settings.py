"""Connector settings.

``DatasourceSettings`` holds everything a connector instance needs: where the
analytics API lives, how to authenticate, and how responses are shaped into
frames. Values come from ``PIPESPINE_*`` environment variables or a ``.env``
file; tests and the HTTP facade construct it directly.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not mid-query
    - **Secrets stay secret:** The token is a ``SecretStr`` and never logged
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> settings = DatasourceSettings(host="https://api.tinybird.co", token="p.abc")
    >>> settings.pipes_url
    'https://api.tinybird.co/v0/pipes/'

Tags:
    settings, configuration, pydantic, environment, pipespine
"""

from __future__ import annotations

from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatasourceSettings(BaseSettings):
    """Validated connector settings.

    Fields
    ──────
    host            : Base URL of the analytics API (no trailing ``/v0``)
    token           : Auth token, sent as bearer header or ``token`` param
    auth_mode       : ``header`` (Authorization: Bearer) or ``query``
    timeout         : Request timeout in seconds; ``None`` keeps httpx's default
    strict_time_key : Require every query to name its time key
    frame_shape     : ``per_metric`` (one frame per column) or ``wide`` (pivot)
    null_policy     : ``zero`` (kind-specific zero values) or ``null`` (None)
    timezone        : Zone applied to timestamps that carry no offset
    max_workers     : Batch fan-out; 1 processes queries sequentially
    log_level       : DEBUG, INFO, WARNING, ERROR or CRITICAL (any case)
    json_logs       : Force JSON (True) or console (False) log rendering
    """

    model_config = SettingsConfigDict(
        env_prefix="PIPESPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Upstream ─────────────────────────────────────────────────
    host: str = ""
    token: SecretStr = SecretStr("")
    auth_mode: Literal["header", "query"] = "header"
    timeout: float | None = None

    # ── Shaping ──────────────────────────────────────────────────
    strict_time_key: bool = False
    frame_shape: Literal["per_metric", "wide"] = "per_metric"
    null_policy: Literal["zero", "null"] = "zero"
    timezone: str = "UTC"

    # ── Execution ────────────────────────────────────────────────
    max_workers: int = Field(default=1, ge=1, le=64)

    # ── Observability ────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_logs: bool | None = None

    @field_validator("host")
    @classmethod
    def strip_host(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: object) -> object:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {v!r}") from exc
        return v

    @property
    def pipes_url(self) -> str:
        """Base URL every pipe, listing and health request hangs off."""
        return f"{self.host}/v0/pipes/"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
