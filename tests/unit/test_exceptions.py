"""Tests for error formatting."""

from sqlmerge.exceptions import (
    ConfigurationError,
    ConnectionError,
    DataMergeError,
    ExecutionError,
    MergeCancelledError,
    ValidationError,
)


class TestValidationError:
    def test_format(self):
        error = ValidationError("No key columns", target_table="dbo.User")

        assert isinstance(error, DataMergeError)
        assert "✗ Merge definition validation failed" in str(error)
        assert "Target: dbo.User" in str(error)
        assert "Error: No key columns" in str(error)

    def test_without_target(self):
        assert "Target:" not in str(ValidationError("No target table"))


class TestConfigurationError:
    def test_suggestions_are_numbered(self):
        error = ConfigurationError("Bulk load unsupported", suggestions=["Use inline", "Use mssql"])

        assert "1. Use inline" in str(error)
        assert "2. Use mssql" in str(error)

    def test_no_suggestions(self):
        assert "Suggestions" not in str(ConfigurationError("Bad gateway"))


class TestExecutionError:
    def test_format(self):
        original = RuntimeError("deadlock")
        error = ExecutionError("merge", "deadlock", sql="MERGE INTO [t]", original_error=original)

        assert error.step == "merge"
        assert error.original_error is original
        assert "✗ Merge step failed: merge" in str(error)
        assert "Type: RuntimeError" in str(error)
        assert "MERGE INTO [t]" in str(error)

    def test_long_statement_is_truncated(self):
        error = ExecutionError("merge", "failed", sql="x" * 600)

        assert "x" * 500 + " ..." in str(error)
        assert "x" * 501 not in str(error)


class TestMergeCancelledError:
    def test_state(self):
        error = MergeCancelledError("bulk_loading")

        assert error.state == "bulk_loading"
        assert "bulk_loading" in str(error)


class TestConnectionError:
    def test_format(self):
        error = ConnectionError("SqlServer(db/crm)", "Login failed", ["Check username"])

        assert "✗ Connection failed: SqlServer(db/crm)" in str(error)
        assert "Reason: Login failed" in str(error)
        assert "1. Check username" in str(error)
