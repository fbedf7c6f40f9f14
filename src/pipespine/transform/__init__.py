"""
Response-to-frame transformation engine.

Leaves first:

    types.py       Column type classification (TypeKind, classify)
    timekey.py     Time-axis column resolution
    variables.py   ``${__from}`` / ``${__to}`` parameter expansion
    fields.py      Column → typed Field (null policy, coercion)
    frames.py      Fields → per-metric, wide, or table frames

Nothing in this package does I/O; every function is a pure transform of
already-decoded JSON.
"""

from pipespine.transform.fields import Field, build_field
from pipespine.transform.frames import (
    Frame,
    build_per_metric_frames,
    build_table_frame,
    build_wide_frame,
)
from pipespine.transform.timekey import resolve_time_key
from pipespine.transform.types import ColumnMeta, TypeKind, classify, unwrap_type
from pipespine.transform.variables import expand_params, expand_time_variable

__all__ = [
    "ColumnMeta",
    "TypeKind",
    "classify",
    "unwrap_type",
    "resolve_time_key",
    "expand_params",
    "expand_time_variable",
    "Field",
    "build_field",
    "Frame",
    "build_per_metric_frames",
    "build_wide_frame",
    "build_table_frame",
]
