"""
Shared pytest fixtures for pipespine tests.

This module provides:
- ``settings``: connector settings pointing at a fake host
- ``pipe_api``: the fake pipes API from :mod:`tests._support.pipe_api`
- ``client`` / ``ctx``: a PipeClient and QueryContext wired to ``pipe_api``
- ``time_range``: a fixed dashboard range

Usage:
    def test_something(ctx, pipe_api, time_range):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        result = run_query(ctx, {"pipeName": "top"}, time_range)
"""

from __future__ import annotations

import os

import pytest

from pipespine.core.settings import DatasourceSettings
from pipespine.ops.context import QueryContext
from pipespine.sources.models import TimeRange
from pipespine.sources.pipes import PipeClient
from tests._support.pipe_api import RANGE_END, RANGE_START, PipeAPI, make_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep PIPESPINE_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("PIPESPINE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def settings() -> DatasourceSettings:
    return make_settings()


@pytest.fixture
def pipe_api() -> PipeAPI:
    return PipeAPI()


@pytest.fixture
def client(settings, pipe_api):
    with PipeClient(settings, transport=pipe_api.transport) as c:
        yield c


@pytest.fixture
def ctx(settings, client) -> QueryContext:
    return QueryContext(client=client, settings=settings)


@pytest.fixture
def time_range() -> TimeRange:
    return TimeRange.model_validate({"from": RANGE_START, "to": RANGE_END})
