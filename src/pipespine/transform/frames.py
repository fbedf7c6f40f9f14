"""
Frame assembly: typed fields → host-ready frames.

Four output shapes are supported:

- **Per-metric** (canonical): one frame per value column, each holding
  exactly ``[time_field, value_field]``. No sorting, no pivoting, nothing to
  disambiguate.
- **Wide** (legacy): one frame of every column, stably sorted by time; long
  results (text label columns present) are pivoted so each
  ``(value column, label set)`` becomes its own column.
- **Table**: one frame of every column as returned, no time axis required.
- **Logs**: one single-row frame per log line, the message field carrying
  the row's text columns as labels.

In the time-aligned shapes, temporal columns other than the time key are
dropped. ``data_keys`` narrows them to the named numeric columns, and
``label_keys`` pairs each of those with one text column whose values name
the series (see :func:`select_value_columns`).

Examples:
    >>> meta = [ColumnMeta("ts", "DateTime"), ColumnMeta("v", "Float64")]
    >>> rows = [{"ts": "2024-01-01 00:00:00", "v": 5.0}]
    >>> [f.name for f in build_per_metric_frames(meta, rows, "ts")]
    ['v']
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, tzinfo
from typing import Any

from pipespine.core.errors import DataError
from pipespine.transform.fields import Field, NullPolicy, build_field, ZERO_VALUES
from pipespine.transform.types import ColumnMeta, TypeKind

Row = Mapping[str, Any]

LOG_MESSAGE_COLUMN = "content"
LOG_RESERVED_COLUMNS = frozenset({"level", "id"})


@dataclass
class Frame:
    """A named table of equal-length fields.

    ``meta`` carries rendering hints for the host, e.g.
    ``{"preferredVisualisationType": "logs"}``.
    """

    name: str
    fields: list[Field] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        lengths = {len(f) for f in self.fields}
        if len(lengths) > 1:
            raise ValueError(f"frame {self.name!r} has fields of unequal length: {sorted(lengths)}")

    @property
    def row_count(self) -> int:
        return len(self.fields[0]) if self.fields else 0

    def get_field(self, name: str) -> Field:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def to_rows(self) -> list[dict[str, Any]]:
        """Back to row-major form; positions missing in the response are ``None``."""
        rows: list[dict[str, Any]] = []
        for i in range(self.row_count):
            rows.append({
                display_name(f): f.values[i] if f.valid[i] else None
                for f in self.fields
            })
        return rows

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name, "fields": [f.to_dict() for f in self.fields]}
        if self.meta:
            d["meta"] = dict(self.meta)
        return d


def display_name(f: Field) -> str:
    """``v`` for plain fields, ``v {host=a, region=eu}`` for pivoted ones."""
    if not f.labels:
        return f.name
    labels = ", ".join(f"{k}={v}" for k, v in f.labels.items())
    return f"{f.name} {{{labels}}}"


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _require_rows(rows: Sequence[Row]) -> None:
    if not rows:
        raise DataError("no data", code="NO_DATA")


def _time_column(meta: Sequence[ColumnMeta], time_key: str | None) -> ColumnMeta:
    """Find the time key column; a non-temporal key is read as timestamps."""
    if not time_key:
        raise DataError("no time key", code="NO_TIME_KEY")
    for column in meta:
        if column.name == time_key:
            if column.kind is TypeKind.TEMPORAL:
                return column
            return ColumnMeta(column.name, "DateTime")
    raise DataError(
        f"time key {time_key!r} not found in response",
        code="TIME_KEY_NOT_FOUND",
    ).with_context(column=time_key)


def _value_columns(meta: Sequence[ColumnMeta], time_key: str) -> list[ColumnMeta]:
    return [c for c in meta if c.name != time_key and c.kind is not TypeKind.TEMPORAL]


def _label_text(f: Field, row: int) -> str:
    value = f.values[row]
    return "" if not f.valid[row] or value is None else str(value)


def select_value_columns(
    meta: Sequence[ColumnMeta],
    time_key: str,
    data_keys: Sequence[str] = (),
    label_keys: Sequence[str] = (),
) -> tuple[list[ColumnMeta], dict[str, ColumnMeta]]:
    """Pick the value columns and their paired label columns.

    Keys that do not name a numeric (``data_keys``) or text (``label_keys``)
    column are ignored. Without a matching data key every value column is
    used. Label keys pair positionally with the data keys (all numeric
    columns when none match) and apply only when both lists have the same
    length; otherwise no pairing happens.

    Returns:
        ``(value_columns, pairs)`` where ``pairs`` maps a value column name
        to its label column.
    """
    candidates = _value_columns(meta, time_key)
    numeric = {c.name: c for c in candidates if c.kind is TypeKind.NUMERIC}
    textual = {c.name: c for c in candidates if c.kind is TypeKind.TEXTUAL}

    chosen = [numeric[k] for k in dict.fromkeys(data_keys) if k in numeric]
    labels = [textual[k] for k in label_keys if k in textual]

    paired_with = chosen or list(numeric.values())
    if labels and len(labels) == len(paired_with):
        return paired_with, {v.name: label for v, label in zip(paired_with, labels)}
    return chosen or candidates, {}


# ------------------------------------------------------------------ #
# Per-metric
# ------------------------------------------------------------------ #


def _split_by_label(time_field: Field, value_field: Field, label_field: Field) -> list[Frame]:
    """One frame per distinct label value, in first-seen order."""
    groups: dict[str, list[int]] = {}
    for row in range(len(label_field)):
        groups.setdefault(_label_text(label_field, row), []).append(row)

    frames = []
    for label, indices in groups.items():
        value = value_field.take(indices)
        value.labels = {label_field.name: label}
        frames.append(Frame(name=label or value_field.name, fields=[time_field.take(indices), value]))
    return frames


def build_per_metric_frames(
    meta: Sequence[ColumnMeta],
    rows: Sequence[Row],
    time_key: str | None,
    *,
    data_keys: Sequence[str] = (),
    label_keys: Sequence[str] = (),
    null_policy: NullPolicy = "zero",
    tz: tzinfo = UTC,
) -> list[Frame]:
    """One ``[time, value]`` frame per value column, in ``meta`` order.

    A value column paired with a label column is split into one frame per
    distinct label value, named after it.
    """
    _require_rows(rows)
    time_field = build_field(_time_column(meta, time_key), rows, null_policy=null_policy, tz=tz)
    values, pairs = select_value_columns(meta, time_field.name, data_keys, label_keys)

    frames: list[Frame] = []
    for column in values:
        value_field = build_field(column, rows, null_policy=null_policy, tz=tz)
        if column.name in pairs:
            label_field = build_field(pairs[column.name], rows, null_policy=null_policy, tz=tz)
            frames.extend(_split_by_label(time_field, value_field, label_field))
        else:
            frames.append(Frame(name=column.name, fields=[time_field, value_field]))
    return frames


# ------------------------------------------------------------------ #
# Wide
# ------------------------------------------------------------------ #


def sort_by_time(frame: Frame, time_key: str) -> Frame:
    """Stable ascending sort on the time field; null times sort last."""
    times = frame.get_field(time_key).values
    order = sorted(range(frame.row_count), key=lambda i: (times[i] is None, times[i] or 0))
    return Frame(name=frame.name, fields=[f.take(order) for f in frame.fields])


def is_long(frame: Frame, time_key: str) -> bool:
    """Long format: at least one text label column beside the time field."""
    return any(f.kind is TypeKind.TEXTUAL for f in frame.fields if f.name != time_key)


def long_to_wide(
    frame: Frame,
    time_key: str,
    *,
    null_policy: NullPolicy = "zero",
    label_map: Mapping[str, Sequence[str]] | None = None,
) -> Frame:
    """Pivot a time-sorted long frame into one column per (value, label set).

    Every value column is labelled by all text columns unless ``label_map``
    names its label columns. Output rows are the distinct timestamps in input
    order. Cells with no matching input row are filled per ``null_policy``;
    when a (time, label set) pair repeats, the last row wins.
    """
    time_field = frame.get_field(time_key)
    value_fields = [f for f in frame.fields if f.kind is TypeKind.NUMERIC]
    if not value_fields:
        raise DataError("no time series data", code="NO_TIME_SERIES")

    all_labels = [f.name for f in frame.fields if f.kind is TypeKind.TEXTUAL]
    labels_for = {
        v.name: [frame.get_field(n) for n in (label_map or {}).get(v.name, all_labels)]
        for v in value_fields
    }

    time_index: dict[Any, int] = {}
    out_times: list[Any] = []
    out_time_valid: list[bool] = []
    series: dict[tuple[str, tuple[tuple[str, str], ...]], dict[int, tuple[Any, bool]]] = {}

    for row in range(frame.row_count):
        t = time_field.values[row]
        if t not in time_index:
            time_index[t] = len(out_times)
            out_times.append(t)
            out_time_valid.append(time_field.valid[row])
        for value_field in value_fields:
            labels = tuple((f.name, _label_text(f, row)) for f in labels_for[value_field.name])
            cells = series.setdefault((value_field.name, labels), {})
            cells[time_index[t]] = (value_field.values[row], value_field.valid[row])

    fill = ZERO_VALUES[TypeKind.NUMERIC] if null_policy == "zero" else None
    fields = [Field(time_field.name, TypeKind.TEMPORAL, out_times, out_time_valid)]
    for (name, labels), cells in series.items():
        values: list[Any] = []
        valid: list[bool] = []
        for i in range(len(out_times)):
            value, ok = cells.get(i, (fill, False))
            values.append(value)
            valid.append(ok)
        fields.append(Field(name=name, kind=TypeKind.NUMERIC, values=values, valid=valid, labels=dict(labels)))

    return Frame(name=frame.name, fields=fields)


def build_wide_frame(
    meta: Sequence[ColumnMeta],
    rows: Sequence[Row],
    time_key: str | None,
    *,
    name: str = "response",
    data_keys: Sequence[str] = (),
    label_keys: Sequence[str] = (),
    null_policy: NullPolicy = "zero",
    tz: tzinfo = UTC,
) -> Frame:
    """Single time-sorted frame, pivoted when the result is in long format.

    Paired label columns label only their own value column; otherwise every
    text column labels every value column.
    """
    _require_rows(rows)
    time_field = build_field(_time_column(meta, time_key), rows, null_policy=null_policy, tz=tz)
    values, pairs = select_value_columns(meta, time_field.name, data_keys, label_keys)
    paired_labels = {c.name for c in pairs.values()}
    labels = [
        c for c in _value_columns(meta, time_field.name)
        if c.kind is TypeKind.TEXTUAL and c not in values and (not pairs or c.name in paired_labels)
    ]
    fields = [time_field] + [
        build_field(column, rows, null_policy=null_policy, tz=tz)
        for column in values + labels
    ]

    frame = sort_by_time(Frame(name=name, fields=fields), time_field.name)

    if is_long(frame, time_field.name):
        label_map = {v: [label.name] for v, label in pairs.items()} or None
        return long_to_wide(frame, time_field.name, null_policy=null_policy, label_map=label_map)
    if not any(f.kind is TypeKind.NUMERIC for f in frame.fields):
        raise DataError("no time series data", code="NO_TIME_SERIES")
    return frame


# ------------------------------------------------------------------ #
# Table
# ------------------------------------------------------------------ #


def build_table_frame(
    meta: Sequence[ColumnMeta],
    rows: Sequence[Row],
    *,
    name: str = "response",
    null_policy: NullPolicy = "zero",
    tz: tzinfo = UTC,
) -> Frame:
    """Every column, in ``meta`` order, rows as returned."""
    _require_rows(rows)
    return Frame(
        name=name,
        fields=[build_field(column, rows, null_policy=null_policy, tz=tz) for column in meta],
    )


# ------------------------------------------------------------------ #
# Logs
# ------------------------------------------------------------------ #


def _log_columns(meta: Sequence[ColumnMeta]) -> list[ColumnMeta]:
    """A leading ``UInt64`` column holds the log timestamp as an epoch."""
    columns = list(meta)
    if columns and columns[0].type == "UInt64":
        columns[0] = ColumnMeta(columns[0].name, "DateTime")
    return columns


def build_logs_frames(
    meta: Sequence[ColumnMeta],
    rows: Sequence[Row],
    *,
    name: str = "response",
    null_policy: NullPolicy = "zero",
    tz: tzinfo = UTC,
) -> list[Frame]:
    """One single-row frame per log line, in response order.

    The message is the ``content`` column, or else the first text column.
    Other text columns (except ``level`` and ``id``) become labels on the
    message field instead of fields of their own.

    Raises:
        DataError: ``NO_DATA`` when there are no rows or no text column to
            use as the message.
    """
    _require_rows(rows)
    columns = _log_columns(meta)
    message = next(
        (c for c in columns if c.name == LOG_MESSAGE_COLUMN),
        next((c for c in columns if c.kind is TypeKind.TEXTUAL), None),
    )
    if message is None:
        raise DataError("no message column for logs", code="NO_DATA")

    label_names = {
        c.name for c in columns
        if c.kind is TypeKind.TEXTUAL and c.name != message.name and c.name not in LOG_RESERVED_COLUMNS
    }
    fields = [build_field(c, rows, null_policy=null_policy, tz=tz) for c in columns]
    label_fields = [f for f in fields if f.name in label_names]
    line_fields = [f for f in fields if f.name not in label_names]

    frames = []
    for row in range(len(rows)):
        line = [f.take([row]) for f in line_fields]
        for f in line:
            if f.name == message.name:
                f.labels = {label.name: _label_text(label, row) for label in label_fields}
        frames.append(Frame(name=name, fields=line, meta={"preferredVisualisationType": "logs"}))
    return frames
