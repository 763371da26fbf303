"""Context-aware logging for merge operations.

A ``LoggingContext`` binds the identity of one merge (``merge_id``,
``target_table``, ``strategy``) to every log line and times the individual
pipeline steps through :meth:`LoggingContext.operation`.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from sqlmerge.utils import logging as _logging
from sqlmerge.utils.logging import StructuredLogger


class OperationType(str, Enum):
    """Pipeline steps timed by the logging context."""

    VALIDATE = "validate"
    CREATE_TABLE = "create_table"
    BULK_LOAD = "bulk_load"
    MERGE = "merge"
    READ_OUTPUT = "read_output"


@dataclass
class OperationMetrics:
    """Timing and row counts captured for a single operation."""

    start_time: Optional[float] = None
    end_time: Optional[float] = None
    rows_in: Optional[int] = None
    rows_out: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    @property
    def row_delta(self) -> Optional[int]:
        if self.rows_in is None or self.rows_out is None:
            return None
        return self.rows_out - self.rows_in

    def to_dict(self) -> Dict[str, Any]:
        """Only fields that were actually measured are included."""
        result: Dict[str, Any] = {}
        if self.elapsed_ms is not None:
            result["elapsed_ms"] = round(self.elapsed_ms, 2)
        if self.rows_in is not None:
            result["rows_in"] = self.rows_in
        if self.rows_out is not None:
            result["rows_out"] = self.rows_out
        if self.row_delta is not None:
            result["row_delta"] = self.row_delta
        result.update(self.extra)
        return result


class LoggingContext:
    """Structured logger bound to one merge operation."""

    def __init__(
        self,
        logger: Optional[StructuredLogger] = None,
        merge_id: Optional[str] = None,
        target_table: Optional[str] = None,
        strategy: Optional[str] = None,
    ):
        self._logger = logger
        self.merge_id = merge_id
        self.target_table = target_table
        self.strategy = strategy

    @property
    def logger(self) -> StructuredLogger:
        # resolved lazily so configure_logging() replacements are honoured
        return self._logger if self._logger is not None else _logging.logger

    def _base_context(self) -> Dict[str, Any]:
        context: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat()}
        if self.merge_id:
            context["merge_id"] = self.merge_id
        if self.target_table:
            context["target_table"] = self.target_table
        if self.strategy:
            context["strategy"] = self.strategy
        return context

    def with_context(self, **overrides: Any) -> "LoggingContext":
        """Return a copy with some bound fields replaced."""
        values = {
            "merge_id": self.merge_id,
            "target_table": self.target_table,
            "strategy": self.strategy,
        }
        values.update(overrides)
        return LoggingContext(logger=self._logger, **values)

    def __enter__(self) -> "LoggingContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.error(
                "Merge context exited with error",
                error_type=exc_type.__name__,
                error_message=str(exc_val),
            )
        return False

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        payload = self._base_context()
        payload.pop("timestamp", None)
        payload.update(kwargs)
        getattr(self.logger, level)(message, **payload)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("info", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("warning", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("error", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("debug", message, **kwargs)

    def log_operation_start(self, operation: OperationType, description: str) -> OperationMetrics:
        metrics = OperationMetrics(start_time=time.perf_counter())
        self.debug(f"Starting {operation.value}: {description}", operation=operation.value)
        return metrics

    def log_operation_end(
        self, operation: OperationType, description: str, metrics: OperationMetrics
    ) -> None:
        metrics.end_time = time.perf_counter()
        self.debug(
            f"Completed {operation.value}: {description}",
            operation=operation.value,
            **metrics.to_dict(),
        )

    @contextmanager
    def operation(self, operation: OperationType, description: str) -> Iterator[OperationMetrics]:
        """Time a pipeline step, logging its start, completion or failure."""
        metrics = self.log_operation_start(operation, description)
        try:
            yield metrics
        except BaseException as e:
            metrics.end_time = time.perf_counter()
            self.error(
                f"Failed {operation.value}: {description}",
                operation=operation.value,
                error_type=type(e).__name__,
                error_message=str(e),
                **metrics.to_dict(),
            )
            raise
        self.log_operation_end(operation, description, metrics)


_global_context: Optional[LoggingContext] = None


def get_logging_context() -> LoggingContext:
    """Get the process-wide logging context, creating it on first use."""
    global _global_context
    if _global_context is None:
        _global_context = LoggingContext()
    return _global_context


def set_logging_context(context: LoggingContext) -> None:
    global _global_context
    _global_context = context


def create_logging_context(
    merge_id: Optional[str] = None,
    target_table: Optional[str] = None,
    strategy: Optional[str] = None,
    logger: Optional[StructuredLogger] = None,
) -> LoggingContext:
    """Create a logging context for a single merge."""
    return LoggingContext(
        logger=logger,
        merge_id=merge_id,
        target_table=target_table,
        strategy=strategy,
    )
