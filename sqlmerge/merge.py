"""
Merge Orchestrator
==================

Runs one merge: select the strategy, validate the definition, then drive the
statements through an execution gateway.

The pipeline is a generator yielding the I/O steps it needs (run a statement,
bulk load rows, read OUTPUT rows) and receiving their results. A synchronous
and an asyncio driver perform those steps, so statement generation is shared
by both calling conventions.
"""

import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generator, Iterator, List, Optional, Sequence, Tuple, Union

from sqlmerge.config import MergeDefinition, MergeMode, MergeSettings
from sqlmerge.exceptions import (
    ConfigurationError,
    DataMergeError,
    ExecutionError,
    MergeCancelledError,
)
from sqlmerge.gateways.base import AsyncExecutionGateway, ExecutionGateway
from sqlmerge.generator import build_merge, build_table
from sqlmerge.identifiers import is_missing, to_python
from sqlmerge.mapping import MergeMapping
from sqlmerge.metadata import EntityMetadataProvider, definition_from_metadata
from sqlmerge.output import OutputRow, decode_output_row
from sqlmerge.sources import RowSource, as_row_source
from sqlmerge.strategy import MergeStrategy, select_strategy
from sqlmerge.utils.logging_context import (
    LoggingContext,
    OperationType,
    create_logging_context,
)
from sqlmerge.validation import validate, validate_output_columns


class MergeState(str, Enum):
    """Where a merge execution currently is."""

    VALIDATING = "validating"
    BULK_PREPARING = "bulk_preparing"
    EXECUTING = "executing"
    READING = "reading"
    DONE = "done"
    FAILED = "failed"


@dataclass
class _ExecuteStatement:
    operation: OperationType
    description: str
    sql: str


@dataclass
class _BulkLoad:
    operation: OperationType
    description: str
    destination: str
    column_mappings: Sequence[Tuple[str, str]]
    rows: Iterator[Tuple[Any, ...]]
    row_count: int
    batch_size: int
    sql: Optional[str] = None


@dataclass
class _ReadOutput:
    operation: OperationType
    description: str
    sql: str


def _bulk_value(value: Any) -> Any:
    return None if is_missing(value) else to_python(value)


_Step = Union[_ExecuteStatement, _BulkLoad, _ReadOutput]
_Pipeline = Generator[_Step, Any, Union[int, List[OutputRow]]]


class DataMerge:
    """
    Merge source rows into a SQL Server table.

    Args:
        gateway: Where statements run; an :class:`ExecutionGateway` for
            :meth:`execute` or an :class:`AsyncExecutionGateway` for
            :meth:`execute_async`.
        definition: Merge definition; an empty one is created when omitted.
        settings: Auto-mode threshold and bulk batch size.
        context: Logging context to bind merge fields onto.

    Example:
        >>> merge = (
        ...     DataMerge(gateway)
        ...     .target_table("dbo.User")
        ...     .include_delete(False)
        ...     .map(lambda m: m.column("Id").key().native_type("int"))
        ... )
        >>> merge.execute(df)
        42
    """

    def __init__(
        self,
        gateway: Union[ExecutionGateway, AsyncExecutionGateway],
        definition: Optional[MergeDefinition] = None,
        settings: Optional[MergeSettings] = None,
        context: Optional[LoggingContext] = None,
    ):
        self.gateway = gateway
        self.definition = definition if definition is not None else MergeDefinition()
        self.settings = settings or MergeSettings()
        self.context = context
        self.state: Optional[MergeState] = None
        self._ctx: Optional[LoggingContext] = None

    # Fluent configuration

    def target_table(self, name: str) -> "DataMerge":
        self.definition.target_table = name
        return self

    def include_insert(self, value: bool = True) -> "DataMerge":
        self.definition.include_insert = value
        return self

    def include_update(self, value: bool = True) -> "DataMerge":
        self.definition.include_update = value
        return self

    def include_delete(self, value: bool = True) -> "DataMerge":
        self.definition.include_delete = value
        return self

    def identity_insert(self, value: bool = True) -> "DataMerge":
        self.definition.identity_insert = value
        return self

    def mode(self, mode: Union[MergeMode, str]) -> "DataMerge":
        self.definition.mode = MergeMode(mode)
        return self

    def map(self, builder: Callable[[MergeMapping], Any]) -> "DataMerge":
        """Configure columns through a :class:`MergeMapping` callback."""
        builder(MergeMapping(self.definition))
        return self

    def auto_map(self, provider: EntityMetadataProvider) -> "DataMerge":
        """Populate the definition from an entity metadata provider."""
        definition_from_metadata(provider, self.definition)
        return self

    # Execution

    def execute(self, data: Any, cancel: Optional[threading.Event] = None) -> int:
        """
        Merge ``data`` into the target table.

        Args:
            data: A :class:`RowSource`, a pandas DataFrame, or an iterable of
                mappings, dataclasses, pydantic models or plain objects.
            cancel: Set to abort the merge at its next suspension point.

        Returns:
            Number of target rows affected.
        """
        result = self._run(data, capture_output=False, cancel=cancel)
        return len(result) if isinstance(result, list) else result

    def execute_output(
        self, data: Any, cancel: Optional[threading.Event] = None
    ) -> List[OutputRow]:
        """Merge ``data`` and return the changed rows with their before/after values."""
        return self._run(data, capture_output=True, cancel=cancel)

    async def execute_async(self, data: Any, cancel: Optional[threading.Event] = None) -> int:
        result = await self._run_async(data, capture_output=False, cancel=cancel)
        return len(result) if isinstance(result, list) else result

    async def execute_output_async(
        self, data: Any, cancel: Optional[threading.Event] = None
    ) -> List[OutputRow]:
        return await self._run_async(data, capture_output=True, cancel=cancel)

    # Shared pipeline

    def _transition(self, state: MergeState) -> None:
        self.state = state
        if self._ctx is not None:
            self._ctx.debug(f"Merge state: {state.value}", state=state.value)

    def _check_cancelled(self, cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise MergeCancelledError(self.state.value if self.state else "starting")

    def _prepare(
        self, data: Any, capture_output: bool, asynchronous: bool
    ) -> Tuple[RowSource, MergeStrategy]:
        self._ctx = None
        self._transition(MergeState.VALIDATING)

        try:
            self._check_gateway_kind(asynchronous)

            if capture_output:
                self.definition.include_output = True

            rows = as_row_source(data)
            strategy = select_strategy(
                self.definition.mode, len(rows), self.settings.bulk_threshold
            )

            self._ctx = self._create_context(strategy)
            with self._ctx.operation(OperationType.VALIDATE, "merge definition") as metrics:
                metrics.rows_in = len(rows)
                validate(self.definition, is_bulk=strategy == MergeStrategy.BULK_LOAD)
                if self.definition.include_output:
                    validate_output_columns(self.definition)

            if strategy == MergeStrategy.BULK_LOAD and not self.gateway.supports_bulk_load:
                raise ConfigurationError(
                    "The bulk load strategy requires a bulk-capable connection",
                    suggestions=[
                        "Connect through SQL Server (mssql dialect)",
                        "Set mode to 'inline_statement'",
                        f"Raise settings.bulk_threshold above {len(rows)} for auto mode",
                    ],
                )
        except BaseException:
            self._transition(MergeState.FAILED)
            raise

        self._ctx.info(
            f"Merging {len(rows)} rows into {self.definition.target_table}",
            rows=len(rows),
            include_insert=self.definition.include_insert,
            include_update=self.definition.include_update,
            include_delete=self.definition.include_delete,
            include_output=self.definition.include_output,
        )
        return rows, strategy

    def _check_gateway_kind(self, asynchronous: bool) -> None:
        if asynchronous and isinstance(self.gateway, ExecutionGateway):
            raise ConfigurationError(
                "execute_async() needs an asynchronous gateway",
                suggestions=["Use execute() or wrap the bind in AsyncSqlAlchemyGateway"],
            )
        if not asynchronous and isinstance(self.gateway, AsyncExecutionGateway):
            raise ConfigurationError(
                "execute() needs a synchronous gateway",
                suggestions=["Use execute_async() or wrap the bind in SqlAlchemyGateway"],
            )

    def _create_context(self, strategy: MergeStrategy) -> LoggingContext:
        if self.context is not None:
            return self.context.with_context(
                target_table=self.definition.target_table, strategy=strategy.value
            )
        return create_logging_context(
            merge_id=uuid.uuid4().hex[:8],
            target_table=self.definition.target_table,
            strategy=strategy.value,
        )

    def _bulk_rows(
        self, rows: RowSource, cancel: Optional[threading.Event]
    ) -> Tuple[List[Tuple[str, str]], Iterator[Tuple[Any, ...]]]:
        mappings: List[Tuple[str, str]] = []
        positions: List[int] = []
        for column in self.definition.mapped_columns():
            position = rows.index_of(column.source_column)
            if column.can_bulk_load and position is not None:
                mappings.append((column.source_column, column.source_column))
                positions.append(position)

        def projected() -> Iterator[Tuple[Any, ...]]:
            for row in rows:
                self._check_cancelled(cancel)
                # same NULL handling as the inline VALUES literals
                yield tuple(_bulk_value(row[p]) for p in positions)

        return mappings, projected()

    def _pipeline(
        self, rows: RowSource, strategy: MergeStrategy, cancel: Optional[threading.Event]
    ) -> _Pipeline:
        definition = self.definition
        target = definition.target_table

        if strategy == MergeStrategy.BULK_LOAD:
            self._transition(MergeState.BULK_PREPARING)
            yield _ExecuteStatement(
                OperationType.CREATE_TABLE,
                f"temporary table {definition.temporary_table}",
                build_table(definition),
            )

            mappings, projected = self._bulk_rows(rows, cancel)
            yield _BulkLoad(
                OperationType.BULK_LOAD,
                f"{len(rows)} rows into {definition.temporary_table}",
                definition.temporary_table,
                mappings,
                projected,
                len(rows),
                self.settings.bulk_batch_size,
            )
            sql = build_merge(definition)
        else:
            sql = build_merge(definition, rows)

        self._transition(MergeState.EXECUTING)
        if definition.include_output:
            output = yield _ReadOutput(OperationType.READ_OUTPUT, f"merge into {target}", sql)
            return output

        affected = yield _ExecuteStatement(OperationType.MERGE, f"merge into {target}", sql)
        return affected

    def _execution_error(self, step: str, error: Exception, sql: Optional[str]) -> ExecutionError:
        self._ctx.error(
            f"Merge step failed: {step}",
            error_type=type(error).__name__,
            error_message=str(error),
        )
        return ExecutionError(step, str(error), sql=sql, original_error=error)

    def _finish(self, result: Union[int, List[OutputRow]]) -> None:
        self._transition(MergeState.DONE)
        self._ctx.info(
            f"Merge into {self.definition.target_table} completed",
            rows_affected=len(result) if isinstance(result, list) else result,
        )

    # Synchronous driver

    def _run(self, data: Any, capture_output: bool, cancel: Optional[threading.Event]):
        rows, strategy = self._prepare(data, capture_output, asynchronous=False)
        pipeline = self._pipeline(rows, strategy, cancel)

        try:
            try:
                self.gateway.acquire()
            except DataMergeError:
                raise
            except Exception as e:
                raise self._execution_error("acquire connection", e, None) from e

            outcome = None
            while True:
                try:
                    step = pipeline.send(outcome)
                except StopIteration as stop:
                    result = stop.value
                    break
                self._check_cancelled(cancel)
                outcome = self._perform(step, cancel)
        except BaseException:
            self._transition(MergeState.FAILED)
            raise
        finally:
            pipeline.close()
            self.gateway.release()

        self._finish(result)
        return result

    def _perform(self, step: _Step, cancel: Optional[threading.Event]) -> Any:
        with self._ctx.operation(step.operation, step.description) as metrics:
            try:
                if isinstance(step, _BulkLoad):
                    metrics.rows_in = step.row_count
                    outcome = self.gateway.bulk_loader().load(
                        step.destination, step.column_mappings, step.rows, step.batch_size
                    )
                    metrics.rows_out = outcome
                elif isinstance(step, _ReadOutput):
                    outcome = self._read_output(step.sql, cancel)
                    metrics.rows_out = len(outcome)
                else:
                    outcome = self.gateway.execute(step.sql)
                    metrics.rows_out = outcome
            except DataMergeError:
                raise
            except Exception as e:
                raise self._execution_error(step.operation.value, e, step.sql) from e
        return outcome

    def _read_output(self, sql: str, cancel: Optional[threading.Event]) -> List[OutputRow]:
        reader = self.gateway.execute_reader(sql)
        try:
            self._transition(MergeState.READING)
            output = []
            for record in reader:
                self._check_cancelled(cancel)
                output.append(decode_output_row(record, self.definition, reader.field_type))
            return output
        finally:
            reader.close()

    # Asynchronous driver

    async def _run_async(self, data: Any, capture_output: bool, cancel: Optional[threading.Event]):
        rows, strategy = self._prepare(data, capture_output, asynchronous=True)
        pipeline = self._pipeline(rows, strategy, cancel)

        try:
            try:
                await self.gateway.acquire()
            except DataMergeError:
                raise
            except Exception as e:
                raise self._execution_error("acquire connection", e, None) from e

            outcome = None
            while True:
                try:
                    step = pipeline.send(outcome)
                except StopIteration as stop:
                    result = stop.value
                    break
                self._check_cancelled(cancel)
                outcome = await self._perform_async(step, cancel)
        except BaseException:
            self._transition(MergeState.FAILED)
            raise
        finally:
            pipeline.close()
            await self.gateway.release()

        self._finish(result)
        return result

    async def _perform_async(self, step: _Step, cancel: Optional[threading.Event]) -> Any:
        with self._ctx.operation(step.operation, step.description) as metrics:
            try:
                if isinstance(step, _BulkLoad):
                    metrics.rows_in = step.row_count
                    outcome = await self.gateway.bulk_loader().load(
                        step.destination, step.column_mappings, step.rows, step.batch_size
                    )
                    metrics.rows_out = outcome
                elif isinstance(step, _ReadOutput):
                    outcome = await self._read_output_async(step.sql, cancel)
                    metrics.rows_out = len(outcome)
                else:
                    outcome = await self.gateway.execute(step.sql)
                    metrics.rows_out = outcome
            except DataMergeError:
                raise
            except Exception as e:
                raise self._execution_error(step.operation.value, e, step.sql) from e
        return outcome

    async def _read_output_async(
        self, sql: str, cancel: Optional[threading.Event]
    ) -> List[OutputRow]:
        reader = await self.gateway.execute_reader(sql)
        try:
            self._transition(MergeState.READING)
            output = []
            async for record in reader:
                self._check_cancelled(cancel)
                output.append(decode_output_row(record, self.definition, reader.field_type))
            return output
        finally:
            await reader.close()


def merge_data(
    gateway: Union[ExecutionGateway, AsyncExecutionGateway],
    target: Union[str, MergeDefinition, EntityMetadataProvider],
    settings: Optional[MergeSettings] = None,
) -> DataMerge:
    """
    Start a merge against ``gateway``.

    ``target`` is a table name, a complete :class:`MergeDefinition`, or an
    entity metadata provider the definition is auto-mapped from.
    """
    if isinstance(target, MergeDefinition):
        return DataMerge(gateway, target, settings=settings)
    if isinstance(target, EntityMetadataProvider):
        return DataMerge(gateway, settings=settings).auto_map(target)
    return DataMerge(gateway, settings=settings).target_table(target)
