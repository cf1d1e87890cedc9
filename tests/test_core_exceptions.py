"""Tests for src/core/exceptions.py: exception hierarchy."""

import pytest

from src.core.exceptions import (
    BpipeError,
    ConfigError,
    FilesystemError,
    HistoryError,
    IdentityHandshakeError,
    MalformedHistoryError,
    MissingHistoryError,
    ParameterError,
    PipelineScriptError,
    RetryUsageError,
    ServiceError,
    UndefinedVariableError,
    UsageError,
)


class TestExceptionHierarchy:
    def test_base_exception(self):
        with pytest.raises(BpipeError):
            raise BpipeError("test")

    def test_usage_errors(self):
        assert issubclass(UsageError, BpipeError)
        assert issubclass(RetryUsageError, UsageError)
        assert issubclass(ParameterError, UsageError)

    def test_history_errors_are_not_usage_errors(self):
        assert issubclass(MissingHistoryError, HistoryError)
        assert issubclass(MalformedHistoryError, HistoryError)
        assert not issubclass(MalformedHistoryError, UsageError)

    def test_other_errors_inherit_from_base(self):
        for cls in (FilesystemError, ServiceError, ConfigError, PipelineScriptError):
            assert issubclass(cls, BpipeError)
        assert issubclass(IdentityHandshakeError, FilesystemError)
        assert issubclass(UndefinedVariableError, PipelineScriptError)


class TestErrorPayloads:
    def test_malformed_history_keeps_line(self):
        err = MalformedHistoryError("7\tnot a command")
        assert err.command_line == "7\tnot a command"
        assert str(err).startswith("Internal error")

    def test_undefined_variable_carries_name_and_line(self):
        err = UndefinedVariableError("align", 12)
        assert err.name == "align"
        assert err.line == 12
        assert "line 12" in str(err)
        assert "'align'" in str(err)

    def test_undefined_variable_without_line(self):
        assert "unknown line" in str(UndefinedVariableError("x", None))

    def test_handshake_error_names_path_and_permissions(self):
        err = IdentityHandshakeError("/work/.bpipe/launch/123")
        assert err.path == "/work/.bpipe/launch/123"
        assert "/work/.bpipe/launch/123" in str(err)
        assert "permissions" in str(err)
