"""Tests for the query operations (orchestrator, batch, variables)."""

import httpx
import pytest

from pipespine.ops.context import QueryContext
from pipespine.ops.query import find_variable_values, run_batch, run_query
from pipespine.sources.models import QuerySpec
from pipespine.sources.pipes import PipeClient
from pipespine.transform.types import TypeKind
from tests._support.pipe_api import (
    LOGS_BODY,
    LONG_BODY,
    METRICS_BODY,
    TIME_RANGE,
    TIMESERIES_BODY,
    make_settings,
)


def _ctx(pipe_api, **overrides) -> QueryContext:
    settings = make_settings(**overrides)
    return QueryContext(client=PipeClient(settings, transport=pipe_api.transport), settings=settings)


class TestRunQuery:
    """Happy paths through the pipeline."""

    def test_per_metric_frames(self, ctx, pipe_api):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        result = run_query(ctx, {"refId": "A", "pipeName": "top", "timeKey": "ts"}, TIME_RANGE)
        assert result.success
        assert [f.name for f in result.data] == ["v"]
        assert result.data[0].get_field("v").values == [5.0, 0.0]
        assert result.metadata["ref_id"] == "A"
        assert result.metadata["fetch"]["row_count"] == 2

    def test_time_key_inferred(self, ctx, pipe_api):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        result = run_query(ctx, {"pipeName": "top"}, TIME_RANGE)
        assert result.success
        assert result.data[0].fields[0].name == "ts"

    def test_accepts_query_spec(self, ctx, pipe_api, time_range):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        result = run_query(ctx, QuerySpec(pipe_name="top"), time_range)
        assert result.success

    def test_params_expanded_before_call(self, ctx, pipe_api):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        query = {
            "pipeName": "top",
            "params": {"start": "${__from:date:seconds}", "day": "${__to:date:YYYY-MM-DD}", "skip": ""},
        }
        run_query(ctx, query, TIME_RANGE)
        params = pipe_api.last_request.url.params
        assert params["start"] == "1705314600"
        assert params["day"] == "2024-01-15"
        assert "skip" not in params

    def test_wide_shape(self, pipe_api):
        pipe_api.add_pipe("hits", LONG_BODY)
        result = run_query(_ctx(pipe_api, frame_shape="wide"), {"pipeName": "hits"}, TIME_RANGE)
        assert result.success
        (frame,) = result.data
        assert frame.name == "hits"
        assert [f.labels for f in frame.fields[1:]] == [{"host": "a"}, {"host": "b"}]

    def test_table_format(self, ctx, pipe_api):
        pipe_api.add_pipe("hits", LONG_BODY)
        result = run_query(ctx, {"pipeName": "hits", "format": "table"}, TIME_RANGE)
        assert result.success
        (frame,) = result.data
        assert [f.name for f in frame.fields] == ["t", "host", "hits"]
        assert frame.get_field("host").kind is TypeKind.TEXTUAL

    def test_table_format_needs_no_time_key(self, pipe_api):
        pipe_api.add_pipe("p", {"meta": [{"name": "k", "type": "String"}], "data": [{"k": "x"}]})
        ctx = _ctx(pipe_api, strict_time_key=True)
        assert run_query(ctx, {"pipeName": "p", "format": "table"}, TIME_RANGE).success

    def test_null_policy_from_settings(self, pipe_api):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        result = run_query(_ctx(pipe_api, null_policy="null"), {"pipeName": "top"}, TIME_RANGE)
        assert result.data[0].get_field("v").values == [5.0, None]

    def test_to_dict_serialises_frames(self, ctx, pipe_api):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        d = run_query(ctx, {"pipeName": "top"}, TIME_RANGE).to_dict()
        assert d["success"] is True
        assert d["data"][0]["fields"][0] == {
            "name": "ts",
            "type": "time",
            "values": [1704067200000, 1704067260000],
        }

    def test_logs_format(self, pipe_api):
        pipe_api.add_pipe("app", LOGS_BODY)
        result = run_query(_ctx(pipe_api, strict_time_key=True), {"pipeName": "app", "format": "logs"}, TIME_RANGE)
        assert result.success
        assert len(result.data) == 2
        d = result.to_dict()["data"][0]
        assert d["meta"] == {"preferredVisualisationType": "logs"}
        assert d["fields"][0] == {"name": "timestamp", "type": "time", "values": [1704067200000]}

    def test_data_and_label_keys(self, ctx, pipe_api):
        pipe_api.add_pipe("m", METRICS_BODY)
        query = {"pipeName": "m", "timeKey": "t", "dataKeys": "hits", "labelKeys": "host"}
        result = run_query(ctx, query, TIME_RANGE)
        assert [f.name for f in result.data] == ["a", "b"]

    def test_data_keys_in_wide_shape(self, pipe_api):
        pipe_api.add_pipe("m", METRICS_BODY)
        query = {"pipeName": "m", "dataKeys": ["hits", "errors"], "labelKeys": ["host", "region"]}
        result = run_query(_ctx(pipe_api, frame_shape="wide"), query, TIME_RANGE)
        (frame,) = result.data
        assert [f.labels for f in frame.fields[1:3]] == [{"host": "a"}, {"region": "eu"}]


class TestRunQueryErrors:
    """Every failure becomes a result with a distinct code; nothing raises."""

    def _code(self, ctx, query, time_range=TIME_RANGE):
        result = run_query(ctx, query, time_range)
        assert not result.success
        assert result.data is None
        assert result.error.status == 400
        return result.error.code

    def test_missing_pipe_name(self, ctx, pipe_api):
        assert self._code(ctx, {"pipeName": "  "}) == "VALIDATION_FAILED"
        assert pipe_api.requests == []

    def test_strict_mode_requires_time_key(self, pipe_api):
        assert self._code(_ctx(pipe_api, strict_time_key=True), {"pipeName": "top"}) == "VALIDATION_FAILED"
        assert pipe_api.requests == []

    def test_unknown_format(self, ctx):
        assert self._code(ctx, {"pipeName": "top", "format": "heatmap"}) == "VALIDATION_FAILED"

    def test_pipe_name_path_traversal(self, ctx, pipe_api):
        assert self._code(ctx, {"pipeName": "../../v0/tokens/x"}) == "VALIDATION_FAILED"
        assert pipe_api.requests == []

    def test_pipe_name_query_string(self, pipe_api):
        # the token would ride along in the query string
        ctx = _ctx(pipe_api, auth_mode="query")
        assert self._code(ctx, {"pipeName": "top?q=select+1"}) == "VALIDATION_FAILED"
        assert pipe_api.requests == []

    def test_error_details_carry_ref_id(self, ctx, pipe_api):
        pipe_api.add_pipe("top", {**TIMESERIES_BODY, "data": []})
        result = run_query(ctx, {"refId": "B", "pipeName": "top"}, TIME_RANGE)
        assert result.error.code == "NO_DATA"
        assert result.error.details["ref_id"] == "B"

    def test_number_beyond_float_range_is_parse(self, ctx, pipe_api):
        body = {**TIMESERIES_BODY, "data": [{"ts": "2024-01-01 00:00:00", "v": 10**400}]}
        pipe_api.add_pipe("top", body)
        result = run_query(ctx, {"pipeName": "top"}, TIME_RANGE)
        assert result.error.code == "PARSE"
        assert result.error.details["column"] == "v"

    def test_malformed_time_range(self, ctx):
        assert self._code(ctx, {"pipeName": "top"}, {"from": "yesterday-ish"}) == "VALIDATION_FAILED"

    def test_bad_placeholder(self, ctx):
        assert self._code(ctx, {"pipeName": "top", "params": {"s": "${__from:x}"}}) == "VALIDATION_FAILED"

    def test_transport(self, ctx, pipe_api):
        pipe_api.add_pipe("top", httpx.ConnectTimeout("timed out"))
        assert self._code(ctx, {"pipeName": "top"}) == "TRANSPORT"

    def test_upstream(self, ctx, pipe_api):
        pipe_api.add_pipe("top", {"error": "Resource 'top' not found"}, status=404)
        result = run_query(ctx, {"pipeName": "top"}, TIME_RANGE)
        assert result.error.code == "UPSTREAM"
        assert result.error.message == "Resource 'top' not found"
        assert result.error.details["pipe_name"] == "top"

    def test_parse(self, ctx, pipe_api):
        pipe_api.add_pipe("top", "garbage")
        assert self._code(ctx, {"pipeName": "top"}) == "PARSE"

    def test_parse_on_cell_mismatch(self, ctx, pipe_api):
        body = {**TIMESERIES_BODY, "data": [{"ts": "2024-01-01 00:00:00", "v": "5"}]}
        pipe_api.add_pipe("top", body)
        result = run_query(ctx, {"pipeName": "top"}, TIME_RANGE)
        assert result.error.code == "PARSE"
        assert result.error.details["column"] == "v"

    def test_no_data(self, ctx, pipe_api):
        pipe_api.add_pipe("top", {**TIMESERIES_BODY, "data": []})
        assert self._code(ctx, {"pipeName": "top"}) == "NO_DATA"

    def test_no_time_key(self, ctx, pipe_api):
        pipe_api.add_pipe("p", {"meta": [{"name": "v", "type": "Float64"}], "data": [{"v": 1}]})
        assert self._code(ctx, {"pipeName": "p"}) == "NO_TIME_KEY"

    def test_time_key_not_found(self, ctx, pipe_api):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        assert self._code(ctx, {"pipeName": "top", "timeKey": "when"}) == "TIME_KEY_NOT_FOUND"

    def test_no_time_series(self, pipe_api):
        body = {
            "meta": [{"name": "t", "type": "DateTime"}, {"name": "host", "type": "String"}],
            "data": [{"t": "2024-01-01 00:00:00", "host": "a"}],
        }
        pipe_api.add_pipe("p", body)
        assert self._code(_ctx(pipe_api, frame_shape="wide"), {"pipeName": "p"}) == "NO_TIME_SERIES"

    def test_unexpected_fault_is_internal(self, ctx, pipe_api, monkeypatch):
        pipe_api.add_pipe("top", TIMESERIES_BODY)

        def explode(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr("pipespine.ops.query.build_per_metric_frames", explode)
        result = run_query(ctx, {"pipeName": "top"}, TIME_RANGE)
        assert result.error.code == "INTERNAL"
        assert "kaboom" in result.error.message


class TestRunBatch:

    QUERIES = [
        {"refId": "A", "pipeName": "broken"},
        {"refId": "B", "pipeName": "top"},
        {"refId": "C", "pipeName": "hits", "format": "table"},
    ]

    def _routes(self, pipe_api):
        pipe_api.add_pipe("top", TIMESERIES_BODY)
        pipe_api.add_pipe("hits", LONG_BODY)
        pipe_api.add_pipe("broken", TIMESERIES_BODY)

    def test_fault_in_one_query_spares_siblings(self, ctx, pipe_api, monkeypatch):
        self._routes(pipe_api)
        real_fetch = ctx.client.fetch

        def fetch(pipe_name, params=None):
            if pipe_name == "broken":
                raise RuntimeError("fault in A")
            return real_fetch(pipe_name, params)

        monkeypatch.setattr(ctx.client, "fetch", fetch)
        results = run_batch(ctx, self.QUERIES, TIME_RANGE)

        assert list(results) == ["A", "B", "C"]
        assert results["A"].error.code == "INTERNAL"
        assert results["B"].success
        assert results["C"].success

    def test_typed_failure_spares_siblings(self, ctx, pipe_api):
        self._routes(pipe_api)
        pipe_api.add_pipe("broken", {"error": "bad"}, status=400)
        results = run_batch(ctx, self.QUERIES, TIME_RANGE)
        assert results["A"].error.code == "UPSTREAM"
        assert results["B"].success and results["C"].success

    def test_concurrent_matches_sequential(self, pipe_api):
        self._routes(pipe_api)
        pipe_api.add_pipe("broken", {"error": "bad"}, status=400)
        sequential = run_batch(_ctx(pipe_api), self.QUERIES, TIME_RANGE)
        concurrent = run_batch(_ctx(pipe_api, max_workers=4), self.QUERIES, TIME_RANGE)

        assert list(concurrent) == list(sequential)
        for ref_id in sequential:
            assert concurrent[ref_id].success == sequential[ref_id].success
            assert concurrent[ref_id].to_dict().get("data") == sequential[ref_id].to_dict().get("data")

    def test_empty_batch(self, ctx):
        assert run_batch(ctx, [], TIME_RANGE) == {}


class TestFindVariableValues:

    def test_values_as_text(self, ctx, pipe_api):
        pipe_api.add_pipe("hits", LONG_BODY)
        result = find_variable_values(ctx, {"pipeName": "hits", "variableKey": "host"}, TIME_RANGE)
        assert result.success
        assert result.data.key == "host"
        assert result.data.values == ["a", "a", "b"]

    def test_numbers_rendered_as_text(self, ctx, pipe_api):
        pipe_api.add_pipe("hits", LONG_BODY)
        result = find_variable_values(ctx, {"pipeName": "hits", "variableKey": "hits"}, TIME_RANGE)
        assert result.data.values == ["3", "1", "2"]

    def test_key_required(self, ctx, pipe_api):
        result = find_variable_values(ctx, {"pipeName": "hits", "variableKey": " "}, TIME_RANGE)
        assert result.error.code == "VALIDATION_FAILED"
        assert pipe_api.requests == []

    def test_key_not_in_schema(self, ctx, pipe_api):
        pipe_api.add_pipe("hits", LONG_BODY)
        result = find_variable_values(ctx, {"pipeName": "hits", "variableKey": "region"}, TIME_RANGE)
        assert result.error.code == "VALIDATION_FAILED"
        assert "data schema" in result.error.message

    def test_empty_response_has_no_values(self, ctx, pipe_api):
        pipe_api.add_pipe("hits", {**LONG_BODY, "data": []})
        result = find_variable_values(ctx, {"pipeName": "hits", "variableKey": "host"}, TIME_RANGE)
        assert result.success
        assert result.data.values == []

    def test_upstream_error(self, ctx, pipe_api):
        pipe_api.add_pipe("hits", {"error": "nope"}, status=400)
        result = find_variable_values(ctx, {"pipeName": "hits", "variableKey": "host"}, TIME_RANGE)
        assert result.error.code == "UPSTREAM"
