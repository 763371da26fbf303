from unittest.mock import MagicMock

import pytest

from sqlmerge.utils.logging import StructuredLogger
from sqlmerge.utils.logging_context import (
    LoggingContext,
    OperationMetrics,
    OperationType,
    create_logging_context,
    get_logging_context,
    set_logging_context,
)


@pytest.fixture
def mock_logger():
    return MagicMock(spec=StructuredLogger)


class TestOperationMetrics:
    def test_elapsed_ms_none_when_no_end_time(self):
        assert OperationMetrics(start_time=1.0).elapsed_ms is None

    def test_elapsed_ms_correct_value(self):
        m = OperationMetrics(start_time=10.0, end_time=10.5)
        assert m.elapsed_ms == pytest.approx(500.0)

    def test_row_delta(self):
        assert OperationMetrics(rows_in=100).row_delta is None
        assert OperationMetrics(rows_in=100, rows_out=80).row_delta == -20

    def test_to_dict_only_measured_fields(self):
        assert OperationMetrics().to_dict() == {}

    def test_to_dict_all_fields(self):
        m = OperationMetrics(start_time=1.0, end_time=2.0, rows_in=3, rows_out=5, extra={"a": 1})
        assert m.to_dict() == {
            "elapsed_ms": 1000.0,
            "rows_in": 3,
            "rows_out": 5,
            "row_delta": 2,
            "a": 1,
        }


class TestLoggingContext:
    def test_bound_fields_are_logged(self, mock_logger):
        ctx = LoggingContext(logger=mock_logger, merge_id="abc", target_table="dbo.User")

        ctx.info("Merging", rows=3)

        mock_logger.info.assert_called_once_with(
            "Merging", merge_id="abc", target_table="dbo.User", rows=3
        )

    def test_unset_fields_are_omitted(self, mock_logger):
        LoggingContext(logger=mock_logger).warning("Careful")

        mock_logger.warning.assert_called_once_with("Careful")

    def test_with_context(self, mock_logger):
        ctx = LoggingContext(logger=mock_logger, merge_id="abc", target_table="dbo.User")

        child = ctx.with_context(strategy="bulk_load")

        assert child.merge_id == "abc"
        assert child.target_table == "dbo.User"
        assert child.strategy == "bulk_load"
        assert child.logger is mock_logger
        assert ctx.strategy is None

    def test_operation_logs_start_and_end(self, mock_logger):
        ctx = LoggingContext(logger=mock_logger)

        with ctx.operation(OperationType.MERGE, "dbo.User") as metrics:
            metrics.rows_out = 4

        messages = [c.args[0] for c in mock_logger.debug.call_args_list]
        assert messages == ["Starting merge: dbo.User", "Completed merge: dbo.User"]
        assert mock_logger.debug.call_args.kwargs["rows_out"] == 4
        assert metrics.elapsed_ms is not None

    def test_operation_logs_failure(self, mock_logger):
        ctx = LoggingContext(logger=mock_logger)

        with pytest.raises(RuntimeError):
            with ctx.operation(OperationType.BULK_LOAD, "#Merge1"):
                raise RuntimeError("boom")

        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.args[0] == "Failed bulk_load: #Merge1"
        assert mock_logger.error.call_args.kwargs["error_type"] == "RuntimeError"

    def test_exit_with_error_is_logged(self, mock_logger):
        with pytest.raises(ValueError):
            with LoggingContext(logger=mock_logger):
                raise ValueError("bad")

        assert mock_logger.error.call_args.kwargs["error_message"] == "bad"


class TestGlobalContext:
    def test_set_and_get(self, mock_logger):
        previous = get_logging_context()
        ctx = create_logging_context(merge_id="m1", logger=mock_logger)
        try:
            set_logging_context(ctx)
            assert get_logging_context() is ctx
        finally:
            set_logging_context(previous)

    def test_create_logging_context(self):
        ctx = create_logging_context(merge_id="m1", target_table="t", strategy="inline_statement")

        assert (ctx.merge_id, ctx.target_table, ctx.strategy) == ("m1", "t", "inline_statement")
