"""
Query operations: run pipes and turn their responses into frames.

Each query is one pass through a fixed pipeline, terminal on the first
failure::

    parse → validate → expand params → fetch → check data
          → resolve time key → build frames

:func:`run_query` is the fault boundary. Typed pipespine errors become a
failed :class:`OperationResult` carrying their code; anything else is logged
with a traceback and reported as ``INTERNAL``. Either way the result belongs
to that query alone, so :func:`run_batch` never loses sibling results to one
bad query.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from pipespine.core.errors import DataError, ErrorCategory, PipespineError, ValidationError
from pipespine.core.logging import get_logger
from pipespine.ops.context import QueryContext
from pipespine.ops.responses import VariableValues
from pipespine.ops.result import OperationResult, start_timer
from pipespine.sources.models import PipeResponse, QuerySpec, TimeRange
from pipespine.sources.pipes import check_pipe_name
from pipespine.transform.fields import coerce_cell, to_cell
from pipespine.transform.frames import (
    Frame,
    build_logs_frames,
    build_per_metric_frames,
    build_table_frame,
    build_wide_frame,
)
from pipespine.transform.timekey import resolve_time_key
from pipespine.transform.types import TypeKind
from pipespine.transform.variables import expand_params

logger = get_logger(__name__)

QueryInput = QuerySpec | Mapping[str, Any]
RangeInput = TimeRange | Mapping[str, Any]


# ------------------------------------------------------------------ #
# Parsing and validation
# ------------------------------------------------------------------ #


def parse_query(query: QueryInput) -> QuerySpec:
    """Decode an inbound query; pydantic failures become ``VALIDATION_FAILED``."""
    if isinstance(query, QuerySpec):
        return query
    try:
        return QuerySpec.model_validate(query)
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid query: {exc}", cause=exc) from exc


def parse_time_range(time_range: RangeInput) -> TimeRange:
    if isinstance(time_range, TimeRange):
        return time_range
    try:
        return TimeRange.model_validate(time_range)
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid time range: {exc}", field="range", cause=exc) from exc


def validate_query(spec: QuerySpec, *, strict_time_key: bool = False) -> None:
    if not spec.pipe_name:
        raise ValidationError("pipe name is required", field="pipeName")
    check_pipe_name(spec.pipe_name)
    if strict_time_key and spec.format == "timeseries" and not spec.time_key:
        raise ValidationError("time key is required", field="timeKey")


def _ref_id(query: QueryInput) -> str:
    if isinstance(query, QuerySpec):
        return query.ref_id
    if not isinstance(query, Mapping):
        return "A"
    ref_id = query.get("refId") or query.get("ref_id")
    return str(ref_id) if ref_id else "A"


# ------------------------------------------------------------------ #
# Pipeline
# ------------------------------------------------------------------ #


def _fetch(ctx: QueryContext, spec: QuerySpec, time_range: TimeRange) -> tuple[PipeResponse, dict[str, Any]]:
    params = expand_params(spec.params, time_range.from_, time_range.to)
    response, fetch_meta = ctx.client.fetch(spec.pipe_name, params)
    return response, fetch_meta.to_dict()


def build_frames(ctx: QueryContext, spec: QuerySpec, response: PipeResponse) -> list[Frame]:
    """Shape a successful pipe response per the query format and settings."""
    settings = ctx.settings
    meta = response.columns
    options = {"null_policy": settings.null_policy, "tz": settings.tzinfo}

    if not response.data:
        raise DataError("no data", code="NO_DATA")

    if spec.format == "table":
        return [build_table_frame(meta, response.data, name=spec.pipe_name, **options)]
    if spec.format == "logs":
        return build_logs_frames(meta, response.data, name=spec.pipe_name, **options)

    time_key = resolve_time_key(spec.time_key, meta)
    options.update(data_keys=spec.data_keys, label_keys=spec.label_keys)
    if settings.frame_shape == "wide":
        return [build_wide_frame(meta, response.data, time_key, name=spec.pipe_name, **options)]
    return build_per_metric_frames(meta, response.data, time_key, **options)


def run_query(
    ctx: QueryContext,
    query: QueryInput,
    time_range: RangeInput,
) -> OperationResult[list[Frame]]:
    """Run one query end to end.

    Never raises: every failure is returned as a failed result whose
    ``error.code`` names the step that failed (``VALIDATION_FAILED``,
    ``TRANSPORT``, ``UPSTREAM``, ``PARSE``, ``NO_DATA``, ``NO_TIME_KEY``,
    ``TIME_KEY_NOT_FOUND``, ``NO_TIME_SERIES`` or ``INTERNAL``). No frames
    are returned on failure.
    """
    timer = start_timer()
    ref_id = _ref_id(query)

    with ctx.log_context(ref_id=ref_id):
        metadata: dict[str, Any] = {"ref_id": ref_id}
        try:
            spec = parse_query(query)
            validate_query(spec, strict_time_key=ctx.settings.strict_time_key)
            window = parse_time_range(time_range)

            response, fetch_meta = _fetch(ctx, spec, window)
            metadata["fetch"] = fetch_meta

            frames = build_frames(ctx, spec, response)
        except PipespineError as exc:
            logger.warning("query.failed", code=exc.code, error=exc.message)
            exc.with_context(ref_id=ref_id)
            return OperationResult.from_error(exc, elapsed_ms=timer.elapsed_ms, metadata=metadata)
        except Exception as exc:
            logger.exception("query.crashed", error=str(exc))
            return OperationResult.fail(
                "INTERNAL",
                f"internal error: {exc}",
                category=ErrorCategory.INTERNAL,
                elapsed_ms=timer.elapsed_ms,
                metadata=metadata,
            )

        logger.info(
            "query.completed",
            pipe=spec.pipe_name,
            frames=len(frames),
            rows=len(response.data),
            elapsed_ms=round(timer.elapsed_ms, 2),
        )
        return OperationResult.ok(frames, elapsed_ms=timer.elapsed_ms, metadata=metadata)


def run_batch(
    ctx: QueryContext,
    queries: Sequence[QueryInput],
    time_range: RangeInput,
) -> dict[str, OperationResult[list[Frame]]]:
    """Run every query and key the results by ``refId``.

    With ``settings.max_workers > 1`` queries fan out on a bounded thread
    pool; results are the same as running them one after another. When two
    queries share a ``refId`` the later one wins.
    """
    if not queries:
        return {}

    workers = min(ctx.settings.max_workers, len(queries))
    logger.debug("batch.started", queries=len(queries), workers=workers)

    if workers <= 1:
        results = [run_query(ctx, q, time_range) for q in queries]
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pipespine-query") as pool:
            results = list(pool.map(lambda q: run_query(ctx, q, time_range), queries))

    out = {_ref_id(q): result for q, result in zip(queries, results)}
    failed = sum(1 for r in out.values() if not r.success)
    logger.info("batch.completed", queries=len(queries), failed=failed)
    return out


# ------------------------------------------------------------------ #
# Variables
# ------------------------------------------------------------------ #


def find_variable_values(
    ctx: QueryContext,
    query: QueryInput,
    time_range: RangeInput,
) -> OperationResult[VariableValues]:
    """Values of ``variableKey`` across the pipe's rows, as text.

    An empty response yields no values. A key missing from the first row is
    a ``VALIDATION_FAILED`` error, as is an empty key.
    """
    timer = start_timer()

    with ctx.log_context(ref_id=_ref_id(query)):
        try:
            spec = parse_query(query)
            if not spec.variable_key:
                raise ValidationError("variable key is required", field="variableKey")
            validate_query(spec)
            window = parse_time_range(time_range)

            response, _ = _fetch(ctx, spec, window)
            key = spec.variable_key
            if response.data and key not in response.data[0]:
                raise ValidationError(
                    f"variable key {key!r} is not part of the data schema",
                    field="variableKey",
                    value=key,
                )

            values = [
                "" if row.get(key) is None else coerce_cell(to_cell(row[key]), TypeKind.TEXTUAL)
                for row in response.data
            ]
        except PipespineError as exc:
            logger.warning("variables.failed", code=exc.code, error=exc.message)
            return OperationResult.from_error(exc, elapsed_ms=timer.elapsed_ms)
        except Exception as exc:
            logger.exception("variables.crashed", error=str(exc))
            return OperationResult.fail(
                "INTERNAL",
                f"internal error: {exc}",
                category=ErrorCategory.INTERNAL,
                elapsed_ms=timer.elapsed_ms,
            )

        return OperationResult.ok(
            VariableValues(key=key, values=values),
            elapsed_ms=timer.elapsed_ms,
        )
