"""Execution gateways: where generated statements are run."""

from .base import (
    AsyncBulkLoader,
    AsyncExecutionGateway,
    AsyncResultReader,
    BulkLoader,
    ExecutionGateway,
    ResultReader,
)
from .sql_server import (
    BULK_CAPABLE_DIALECTS,
    AsyncSqlAlchemyGateway,
    SqlAlchemyBulkLoader,
    SqlAlchemyGateway,
)

__all__ = [
    "AsyncBulkLoader",
    "AsyncExecutionGateway",
    "AsyncResultReader",
    "BulkLoader",
    "ExecutionGateway",
    "ResultReader",
    "BULK_CAPABLE_DIALECTS",
    "AsyncSqlAlchemyGateway",
    "SqlAlchemyBulkLoader",
    "SqlAlchemyGateway",
]
