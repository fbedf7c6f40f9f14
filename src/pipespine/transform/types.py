"""
Column type classification.

Maps a column's declared ClickHouse-style type string to one of three
semantic kinds. Wrapper syntax (``Nullable(X)``, ``LowCardinality(X)``) is
stripped first, repeatedly, so nested wrappers in any order classify the same
as their base type.

Examples:
    >>> classify("Nullable(Float64)")
    <TypeKind.NUMERIC: 'number'>
    >>> classify("LowCardinality(Nullable(String))")
    <TypeKind.TEXTUAL: 'string'>
    >>> classify("DateTime64(3)")
    <TypeKind.TEMPORAL: 'time'>
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class TypeKind(str, Enum):
    """Semantic kind of a column. Values match the host's field type names."""

    NUMERIC = "number"
    TEMPORAL = "time"
    TEXTUAL = "string"


NUMERIC_TYPES: frozenset[str] = frozenset({
    "UInt8", "UInt16", "UInt32", "UInt64",
    "Int8", "Int16", "Int32", "Int64",
    "Float32", "Float64",
    "Decimal", "Decimal32", "Decimal64", "Decimal128",
})

TEMPORAL_TYPES: frozenset[str] = frozenset({
    "Date", "DateTime", "DateTime64", "DateTime64(3)", "DateTime64(6)",
})

_WRAPPER_RE = re.compile(r"^\s*(?:Nullable|LowCardinality)\((.*)\)\s*$")


@dataclass(frozen=True, slots=True)
class ColumnMeta:
    """One entry of the response ``meta`` array."""

    name: str
    type: str

    @property
    def kind(self) -> TypeKind:
        return classify(self.type)


def unwrap_type(declared_type: str) -> str:
    """Strip ``Nullable``/``LowCardinality`` wrappers until none remain."""
    current = declared_type.strip()
    while True:
        match = _WRAPPER_RE.match(current)
        if match is None:
            return current
        current = match.group(1).strip()


def classify(declared_type: str) -> TypeKind:
    """Classify a declared column type. Total: unknown types are textual."""
    base = unwrap_type(declared_type)
    if base in NUMERIC_TYPES:
        return TypeKind.NUMERIC
    if base in TEMPORAL_TYPES:
        return TypeKind.TEMPORAL
    return TypeKind.TEXTUAL
