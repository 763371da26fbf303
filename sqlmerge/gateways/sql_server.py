"""
SQLAlchemy Execution Gateways
=============================

Run merge statements over a SQLAlchemy engine or connection. The bulk path is
only offered on SQL Server, where the temporary table the merge reads from is
scoped to the session that created it.
"""

from typing import (
    Any,
    AsyncIterator,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from sqlmerge.exceptions import ConfigurationError
from sqlmerge.gateways.base import (
    AsyncBulkLoader,
    AsyncExecutionGateway,
    AsyncResultReader,
    BulkLoader,
    ColumnMappings,
    ExecutionGateway,
    ResultReader,
)
from sqlmerge.identifiers import quote_identifier, table_identifier
from sqlmerge.utils.logging_context import get_logging_context

BULK_CAPABLE_DIALECTS = {"mssql"}


def _statement(sql: str):
    # generated literals may contain ':' which text() would read as a bind
    return text(sql.replace(":", r"\:"))


def _batches(rows: Iterable[Tuple[Any, ...]], batch_size: int) -> Iterator[List[Tuple[Any, ...]]]:
    batch: List[Tuple[Any, ...]] = []
    for row in rows:
        batch.append(row)
        if len(batch) >= batch_size:
            yield batch
            batch = []
    if batch:
        yield batch


class SqlAlchemyResultReader(ResultReader):
    """Result reader over a SQLAlchemy ``CursorResult``."""

    def __init__(self, result):
        self.result = result
        self._columns = list(result.keys())
        self._types: Dict[str, type] = {}

        cursor = getattr(result, "cursor", None)
        description = getattr(cursor, "description", None) or []
        for entry in description:
            # pyodbc reports Python types; other drivers report codes or None
            if isinstance(entry[1], type):
                self._types[entry[0]] = entry[1]

    @property
    def columns(self) -> List[str]:
        return self._columns

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        for row in self.result.mappings():
            record = dict(row)
            for name, value in record.items():
                if value is not None and name not in self._types:
                    self._types[name] = type(value)
            yield record

    def field_type(self, name: str) -> Optional[type]:
        return self._types.get(name)

    def close(self) -> None:
        self.result.close()


class SqlAlchemyBulkLoader(BulkLoader):
    """Batched executemany INSERT on an open connection."""

    def __init__(self, connection: Connection):
        self.connection = connection

    def load(
        self,
        destination: str,
        column_mappings: ColumnMappings,
        rows: Iterable[Tuple[Any, ...]],
        batch_size: int,
    ) -> int:
        ctx = get_logging_context()

        params = [f"p{i}" for i in range(len(column_mappings))]
        column_list = ", ".join(quote_identifier(target) for _, target in column_mappings)
        head = f"INSERT INTO {table_identifier(destination)} ({column_list})".replace(":", r"\:")
        insert = text(head + " VALUES (" + ", ".join(f":{p}" for p in params) + ")")

        loaded = 0
        for batch in _batches(rows, batch_size):
            self.connection.execute(insert, [dict(zip(params, row)) for row in batch])
            loaded += len(batch)
            ctx.debug(f"Bulk loaded batch into {destination}", rows=len(batch), total=loaded)

        return loaded


class SqlAlchemyGateway(ExecutionGateway):
    """
    Execution gateway over a SQLAlchemy engine or connection.

    Args:
        bind: An ``Engine``, from which an AUTOCOMMIT connection is opened on
            :meth:`acquire` and closed on :meth:`release`, or a ``Connection``
            that is used as-is and never opened, closed, begun or committed.

    Example:
        >>> engine = create_engine("mssql+pyodbc://...")
        >>> gateway = SqlAlchemyGateway(engine)
        >>> DataMerge(gateway, definition).execute(df)
    """

    def __init__(self, bind: Union[Engine, Connection]):
        if not isinstance(bind, (Engine, Connection)):
            raise ConfigurationError(
                f"SqlAlchemyGateway requires an Engine or Connection, got {type(bind).__name__}",
                suggestions=["Use AsyncSqlAlchemyGateway for AsyncEngine/AsyncConnection binds"],
            )
        self.bind = bind
        self._connection: Optional[Connection] = bind if isinstance(bind, Connection) else None
        self._owns_connection = False

    @property
    def dialect_name(self) -> str:
        return self.bind.dialect.name

    @property
    def supports_bulk_load(self) -> bool:
        return self.dialect_name in BULK_CAPABLE_DIALECTS

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise ConfigurationError("Gateway connection is not acquired")
        return self._connection

    @property
    def transaction(self) -> Any:
        if self._connection is None:
            return None
        return self._connection.get_transaction()

    def acquire(self) -> None:
        if self._connection is not None:
            return
        self._connection = self.bind.execution_options(isolation_level="AUTOCOMMIT").connect()
        self._owns_connection = True
        get_logging_context().debug("Opened gateway connection", dialect=self.dialect_name)

    def release(self) -> None:
        if not self._owns_connection or self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None
            self._owns_connection = False
        get_logging_context().debug("Closed gateway connection", dialect=self.dialect_name)

    def execute(self, sql: str) -> int:
        result = self.connection.execute(_statement(sql))
        return result.rowcount

    def execute_reader(self, sql: str) -> ResultReader:
        return SqlAlchemyResultReader(self.connection.execute(_statement(sql)))

    def bulk_loader(self) -> BulkLoader:
        return SqlAlchemyBulkLoader(self.connection)


class AsyncSqlAlchemyResultReader(AsyncResultReader):
    """Streams rows from a SQLAlchemy ``AsyncResult``."""

    def __init__(self, result):
        self.result = result
        self._columns = list(result.keys())
        self._types: Dict[str, type] = {}

    @property
    def columns(self) -> List[str]:
        return self._columns

    async def __aiter__(self) -> AsyncIterator[Mapping[str, Any]]:
        async for row in self.result.mappings():
            record = dict(row)
            for name, value in record.items():
                if value is not None and name not in self._types:
                    self._types[name] = type(value)
            yield record

    def field_type(self, name: str) -> Optional[type]:
        return self._types.get(name)

    async def close(self) -> None:
        await self.result.close()


class AsyncSqlAlchemyBulkLoader(AsyncBulkLoader):
    """Runs :class:`SqlAlchemyBulkLoader` on the async connection's sync facade."""

    def __init__(self, connection: AsyncConnection):
        self.connection = connection

    async def load(
        self,
        destination: str,
        column_mappings: ColumnMappings,
        rows: Iterable[Tuple[Any, ...]],
        batch_size: int,
    ) -> int:
        def _load(sync_connection: Connection) -> int:
            return SqlAlchemyBulkLoader(sync_connection).load(
                destination, column_mappings, rows, batch_size
            )

        return await self.connection.run_sync(_load)


class AsyncSqlAlchemyGateway(AsyncExecutionGateway):
    """Asyncio counterpart of :class:`SqlAlchemyGateway`."""

    def __init__(self, bind: Union[AsyncEngine, AsyncConnection]):
        if not isinstance(bind, (AsyncEngine, AsyncConnection)):
            raise ConfigurationError(
                f"AsyncSqlAlchemyGateway requires an AsyncEngine or AsyncConnection, "
                f"got {type(bind).__name__}",
                suggestions=["Use SqlAlchemyGateway for synchronous Engine/Connection binds"],
            )
        self.bind = bind
        self._connection: Optional[AsyncConnection] = (
            bind if isinstance(bind, AsyncConnection) else None
        )
        self._owns_connection = False

    @property
    def dialect_name(self) -> str:
        return self.bind.dialect.name

    @property
    def supports_bulk_load(self) -> bool:
        return self.dialect_name in BULK_CAPABLE_DIALECTS

    @property
    def connection(self) -> AsyncConnection:
        if self._connection is None:
            raise ConfigurationError("Gateway connection is not acquired")
        return self._connection

    @property
    def transaction(self) -> Any:
        if self._connection is None:
            return None
        return self._connection.get_transaction()

    async def acquire(self) -> None:
        if self._connection is not None:
            return
        self._connection = await self.bind.execution_options(isolation_level="AUTOCOMMIT").connect()
        self._owns_connection = True
        get_logging_context().debug("Opened async gateway connection", dialect=self.dialect_name)

    async def release(self) -> None:
        if not self._owns_connection or self._connection is None:
            return
        try:
            await self._connection.close()
        finally:
            self._connection = None
            self._owns_connection = False
        get_logging_context().debug("Closed async gateway connection", dialect=self.dialect_name)

    async def execute(self, sql: str) -> int:
        result = await self.connection.execute(_statement(sql))
        return result.rowcount

    async def execute_reader(self, sql: str) -> AsyncResultReader:
        return AsyncSqlAlchemyResultReader(await self.connection.stream(_statement(sql)))

    def bulk_loader(self) -> AsyncBulkLoader:
        return AsyncSqlAlchemyBulkLoader(self.connection)
