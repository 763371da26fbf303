"""Contracts between the merge pipeline and the database connection."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

# (source column, destination column) pairs handed to a bulk loader
ColumnMappings = Sequence[Tuple[str, str]]


class ResultReader(ABC):
    """Forward-only cursor over a statement's result set."""

    @property
    @abstractmethod
    def columns(self) -> List[str]:
        pass

    @abstractmethod
    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        pass

    def field_type(self, name: str) -> Optional[type]:
        """Runtime type of result column ``name``, when the driver reports it."""
        return None

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> "ResultReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class AsyncResultReader(ABC):
    """Asynchronous variant of :class:`ResultReader`."""

    @property
    @abstractmethod
    def columns(self) -> List[str]:
        pass

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[Mapping[str, Any]]:
        pass

    def field_type(self, name: str) -> Optional[type]:
        return None

    @abstractmethod
    async def close(self) -> None:
        pass


class BulkLoader(ABC):
    """Bulk transfer of rows into a table on the gateway's connection."""

    @abstractmethod
    def load(
        self,
        destination: str,
        column_mappings: ColumnMappings,
        rows: Iterable[Tuple[Any, ...]],
        batch_size: int,
    ) -> int:
        """
        Load rows into ``destination``.

        Args:
            destination: Table name, quoted or bare.
            column_mappings: Which source columns land in which destination
                columns; the rows carry values in source column order.
            rows: Row tuples, one value per entry of ``column_mappings``.
            batch_size: Rows sent per round trip.

        Returns:
            Number of rows loaded.
        """
        pass


class AsyncBulkLoader(ABC):
    @abstractmethod
    async def load(
        self,
        destination: str,
        column_mappings: ColumnMappings,
        rows: Iterable[Tuple[Any, ...]],
        batch_size: int,
    ) -> int:
        pass


class ExecutionGateway(ABC):
    """
    Runs generated statements for one merge.

    The pipeline calls :meth:`acquire` before the first statement and
    :meth:`release` once it is finished, whether it succeeded or not. A
    gateway never begins or commits a transaction on the caller's behalf;
    statements run inside whatever transaction is already open.
    """

    @property
    @abstractmethod
    def supports_bulk_load(self) -> bool:
        """Whether the connection kind offers a bulk transfer path."""
        pass

    @property
    def transaction(self) -> Any:
        """The transaction statements currently run in, or None."""
        return None

    def acquire(self) -> None:
        pass

    def release(self) -> None:
        pass

    @abstractmethod
    def execute(self, sql: str) -> int:
        """Run a statement and return the number of rows affected."""
        pass

    @abstractmethod
    def execute_reader(self, sql: str) -> ResultReader:
        pass

    @abstractmethod
    def bulk_loader(self) -> BulkLoader:
        pass


class AsyncExecutionGateway(ABC):
    """Asynchronous variant of :class:`ExecutionGateway`."""

    @property
    @abstractmethod
    def supports_bulk_load(self) -> bool:
        pass

    @property
    def transaction(self) -> Any:
        return None

    async def acquire(self) -> None:
        pass

    async def release(self) -> None:
        pass

    @abstractmethod
    async def execute(self, sql: str) -> int:
        pass

    @abstractmethod
    async def execute_reader(self, sql: str) -> AsyncResultReader:
        pass

    @abstractmethod
    def bulk_loader(self) -> AsyncBulkLoader:
        pass
