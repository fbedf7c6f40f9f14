"""Tests for pipespine.core.errors module."""

import pytest

from pipespine.core.errors import (
    ConfigError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ParseError,
    PipespineError,
    TransportError,
    UpstreamError,
    ValidationError,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        """Create context with no fields set."""
        ctx = ErrorContext()
        assert ctx.pipe_name is None
        assert ctx.column is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        """to_dict includes only non-None fields."""
        ctx = ErrorContext(pipe_name="top_pages", http_status=400)
        assert ctx.to_dict() == {"pipe_name": "top_pages", "http_status": 400}

    def test_to_dict_merges_metadata(self):
        ctx = ErrorContext(column="ts", metadata={"param": "start"})
        assert ctx.to_dict() == {"column": "ts", "param": "start"}


class TestPipespineError:
    """Test the base error."""

    def test_defaults(self):
        error = PipespineError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.code == "INTERNAL"
        assert error.category == ErrorCategory.INTERNAL
        assert str(error) == "Something went wrong"

    def test_code_override(self):
        error = DataError("no time key", code="NO_TIME_KEY")
        assert error.code == "NO_TIME_KEY"
        assert error.category == ErrorCategory.DATA

    def test_with_context_sets_known_fields(self):
        error = UpstreamError("bad pipe").with_context(pipe_name="p", http_status=400)
        assert error.context.pipe_name == "p"
        assert error.context.http_status == 400

    def test_with_context_unknown_keys_go_to_metadata(self):
        error = ValidationError("bad").with_context(param="start")
        assert error.context.metadata == {"param": "start"}

    def test_with_context_returns_same_instance(self):
        error = ParseError("x")
        assert error.with_context(column="v") is error

    def test_cause_chaining(self):
        cause = ValueError("inner")
        error = ParseError("outer", cause=cause)
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_to_dict(self):
        error = TransportError("boom", cause=OSError("refused")).with_context(url="https://h/x")
        d = error.to_dict()
        assert d["error_type"] == "TransportError"
        assert d["message"] == "boom"
        assert d["code"] == "TRANSPORT"
        assert d["category"] == "NETWORK"
        assert d["context"] == {"url": "https://h/x"}
        assert d["cause"] == "refused"

    def test_to_dict_omits_empty_context(self):
        assert "context" not in ConfigError("host is required").to_dict()

    def test_repr(self):
        assert repr(DataError("no data")) == "DataError('no data', code=NO_DATA)"


class TestErrorCodes:
    """Each error type carries a distinct default code."""

    @pytest.mark.parametrize(
        "error_cls, code, category",
        [
            (ValidationError, "VALIDATION_FAILED", ErrorCategory.VALIDATION),
            (ConfigError, "CONFIG", ErrorCategory.CONFIG),
            (TransportError, "TRANSPORT", ErrorCategory.NETWORK),
            (UpstreamError, "UPSTREAM", ErrorCategory.SOURCE),
            (ParseError, "PARSE", ErrorCategory.PARSE),
            (DataError, "NO_DATA", ErrorCategory.DATA),
        ],
    )
    def test_default_code_and_category(self, error_cls, code, category):
        error = error_cls("msg")
        assert error.code == code
        assert error.category == category
        assert isinstance(error, PipespineError)

    def test_validation_error_field_and_value(self):
        error = ValidationError("bad placeholder", field="params", value="${__from:x}")
        d = error.to_dict()
        assert d["field"] == "params"
        assert d["value"] == "'${__from:x}'"
