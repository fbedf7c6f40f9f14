"""Tests for column type classification."""

import pytest

from pipespine.transform.types import (
    NUMERIC_TYPES,
    TEMPORAL_TYPES,
    ColumnMeta,
    TypeKind,
    classify,
    unwrap_type,
)


class TestClassify:

    @pytest.mark.parametrize("declared", sorted(NUMERIC_TYPES))
    def test_numeric(self, declared):
        assert classify(declared) is TypeKind.NUMERIC

    @pytest.mark.parametrize("declared", sorted(TEMPORAL_TYPES))
    def test_temporal(self, declared):
        assert classify(declared) is TypeKind.TEMPORAL

    @pytest.mark.parametrize("declared", ["String", "UUID", "Array(String)", "Bool", "", "DateTime64(9)"])
    def test_everything_else_is_textual(self, declared):
        assert classify(declared) is TypeKind.TEXTUAL

    def test_kind_values_match_host_type_names(self):
        assert [k.value for k in TypeKind] == ["number", "time", "string"]


class TestWrappers:

    @pytest.mark.parametrize("declared, base", [
        ("Nullable(Float64)", "Float64"),
        ("LowCardinality(String)", "String"),
        ("LowCardinality(Nullable(String))", "String"),
        ("Nullable(LowCardinality(DateTime))", "DateTime"),
        ("Nullable(Nullable(Int32))", "Int32"),
        ("Nullable(DateTime64(3))", "DateTime64(3)"),
    ])
    def test_unwrap(self, declared, base):
        assert unwrap_type(declared) == base

    def test_unwrap_is_idempotent(self):
        once = unwrap_type("LowCardinality(Nullable(UInt64))")
        assert unwrap_type(once) == once

    def test_wrapper_order_does_not_matter(self):
        assert classify("LowCardinality(Nullable(UInt8))") is classify("Nullable(LowCardinality(UInt8))")

    def test_wrapped_matches_base(self):
        for base in NUMERIC_TYPES | TEMPORAL_TYPES | {"String"}:
            assert classify(f"Nullable({base})") is classify(base)

    def test_type_tables_are_immutable(self):
        assert isinstance(NUMERIC_TYPES, frozenset)
        assert isinstance(TEMPORAL_TYPES, frozenset)


class TestColumnMeta:

    def test_kind(self):
        assert ColumnMeta("ts", "Nullable(DateTime)").kind is TypeKind.TEMPORAL
