"""
Field building: one response column → one homogeneously-typed field.

Raw JSON cells arrive with whatever scalar kind the upstream chose. Each cell
is first tagged (:func:`to_cell`) and then coerced according to the column's
declared kind. Absent and null cells are filled by the null policy:

    ==========  =============  ==========
    Kind        ``zero``       ``null``
    ==========  =============  ==========
    NUMERIC     ``0.0``        ``None``
    TEXTUAL     ``""``         ``None``
    TEMPORAL    Unix epoch     ``None``
    ==========  =============  ==========

Either way the field's ``valid`` mask records where the response had no
value, so null positions survive the trip back to row-major form.

Coercion rules:
    - NUMERIC accepts JSON numbers only.
    - TEMPORAL accepts strings (parsed permissively with python-dateutil,
      naive values localized to the configured zone) and numbers (epoch
      seconds, or milliseconds above ``1e11``).
    - TEXTUAL is the fallback kind for every type the classifier does not
      know (UUID, Array, Map, Bool, ...), so any cell is rendered as text.

Anything else raises :class:`~pipespine.core.errors.ParseError`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from typing import Any, Literal

from dateutil import parser as date_parser

from pipespine.core.errors import ParseError
from pipespine.transform.types import ColumnMeta, TypeKind

NullPolicy = Literal["zero", "null"]

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_EPOCH_MILLIS_THRESHOLD = 1e11

ZERO_VALUES: dict[TypeKind, Any] = {
    TypeKind.NUMERIC: 0.0,
    TypeKind.TEXTUAL: "",
    TypeKind.TEMPORAL: EPOCH,
}


# ------------------------------------------------------------------ #
# Tagged cells
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class NumberCell:
    value: int | float


@dataclass(frozen=True, slots=True)
class StringCell:
    value: str


@dataclass(frozen=True, slots=True)
class NullCell:
    pass


@dataclass(frozen=True, slots=True)
class JsonCell:
    """Booleans, arrays and objects."""

    value: Any


Cell = NumberCell | StringCell | NullCell | JsonCell


def to_cell(raw: Any) -> Cell:
    """Tag a decoded JSON value."""
    if raw is None:
        return NullCell()
    # bool is an int subclass; JSON true/false are not numbers
    if isinstance(raw, bool):
        return JsonCell(raw)
    if isinstance(raw, (int, float)):
        return NumberCell(raw)
    if isinstance(raw, str):
        return StringCell(raw)
    return JsonCell(raw)


# ------------------------------------------------------------------ #
# Field
# ------------------------------------------------------------------ #


@dataclass
class Field:
    """A named column of values sharing one :class:`TypeKind`.

    Attributes:
        name: Column name.
        kind: Semantic kind of every value.
        values: One value per row (``float``, ``str``, aware ``datetime``,
            or ``None`` under the ``null`` policy).
        valid: ``False`` where the response had no value for the row.
        labels: Label set for pivoted series (empty otherwise).
    """

    name: str
    kind: TypeKind
    values: list[Any] = field(default_factory=list)
    valid: list[bool] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def null_positions(self) -> list[int]:
        return [i for i, ok in enumerate(self.valid) if not ok]

    def take(self, indices: Sequence[int]) -> Field:
        """New field with rows reordered/selected by ``indices``."""
        return Field(
            name=self.name,
            kind=self.kind,
            values=[self.values[i] for i in indices],
            valid=[self.valid[i] for i in indices],
            labels=dict(self.labels),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise for JSON output; timestamps become epoch milliseconds."""
        if self.kind is TypeKind.TEMPORAL:
            values = [to_epoch_millis(v) if v is not None else None for v in self.values]
        else:
            values = list(self.values)
        d: dict[str, Any] = {"name": self.name, "type": self.kind.value, "values": values}
        if self.labels:
            d["labels"] = dict(self.labels)
        return d


def to_epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


# ------------------------------------------------------------------ #
# Coercion
# ------------------------------------------------------------------ #


def parse_timestamp(raw: str, tz: tzinfo = UTC) -> datetime:
    """Permissively parse a textual timestamp into an aware datetime."""
    try:
        parsed = date_parser.parse(raw)
    except (ValueError, OverflowError) as exc:
        raise ParseError(f"cannot parse timestamp {raw!r}", cause=exc) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def epoch_to_datetime(raw: int | float) -> datetime:
    """Epoch seconds (or milliseconds, by magnitude) to an aware UTC datetime."""
    seconds = raw / 1000 if abs(raw) > _EPOCH_MILLIS_THRESHOLD else raw
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise ParseError(f"epoch value out of range: {raw!r}", cause=exc) from exc


def coerce_cell(cell: Cell, kind: TypeKind, tz: tzinfo = UTC) -> Any:
    """Coerce a non-null cell to the Python value for ``kind``."""
    match kind, cell:
        case TypeKind.NUMERIC, NumberCell(value=v):
            try:
                return float(v)
            except OverflowError as exc:
                raise ParseError(f"number out of float range: {v}", cause=exc) from exc
        case TypeKind.TEMPORAL, StringCell(value=v):
            return parse_timestamp(v, tz)
        case TypeKind.TEMPORAL, NumberCell(value=v):
            return epoch_to_datetime(v)
        case TypeKind.TEXTUAL, StringCell(value=v):
            return v
        case TypeKind.TEXTUAL, NumberCell(value=v) | JsonCell(value=v):
            return json.dumps(v)
    raise ParseError(
        f"expected {kind.value} value, got {type(cell).__name__.removesuffix('Cell').lower()}"
    )


def build_field(
    column: ColumnMeta,
    rows: Sequence[Mapping[str, Any]],
    *,
    null_policy: NullPolicy = "zero",
    tz: tzinfo = UTC,
) -> Field:
    """Build the field for ``column`` across all ``rows``.

    Raises:
        ParseError: A cell's scalar kind contradicts the column type, or a
            timestamp cannot be parsed. The error carries the column name.
    """
    kind = column.kind
    fill = ZERO_VALUES[kind] if null_policy == "zero" else None
    result = Field(name=column.name, kind=kind)

    for row in rows:
        cell = to_cell(row.get(column.name))
        if isinstance(cell, NullCell):
            result.values.append(fill)
            result.valid.append(False)
            continue
        try:
            result.values.append(coerce_cell(cell, kind, tz))
        except ParseError as exc:
            raise exc.with_context(column=column.name)
        result.valid.append(True)

    return result
