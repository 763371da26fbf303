"""sqlmerge: upsert tabular data into SQL Server tables with T-SQL MERGE."""

__version__ = "1.0.0"

from sqlmerge.config import (
    ColumnMapping,
    MergeDefinition,
    MergeMode,
    MergeProjectConfig,
    MergeSettings,
)
from sqlmerge.exceptions import (
    ConfigurationError,
    DataMergeError,
    ExecutionError,
    MergeCancelledError,
    ValidationError,
)
from sqlmerge.gateways import AsyncSqlAlchemyGateway, SqlAlchemyGateway
from sqlmerge.generator import build_merge, build_table
from sqlmerge.identifiers import (
    format_literal,
    parse_identifier,
    quote_identifier,
    table_identifier,
)
from sqlmerge.merge import DataMerge, MergeState, merge_data
from sqlmerge.output import OutputColumn, OutputRow
from sqlmerge.strategy import MergeStrategy, select_strategy
from sqlmerge.validation import validate

__all__ = [
    "ColumnMapping",
    "MergeDefinition",
    "MergeMode",
    "MergeProjectConfig",
    "MergeSettings",
    "ConfigurationError",
    "DataMergeError",
    "ExecutionError",
    "MergeCancelledError",
    "ValidationError",
    "AsyncSqlAlchemyGateway",
    "SqlAlchemyGateway",
    "build_merge",
    "build_table",
    "format_literal",
    "parse_identifier",
    "quote_identifier",
    "table_identifier",
    "DataMerge",
    "MergeState",
    "merge_data",
    "OutputColumn",
    "OutputRow",
    "MergeStrategy",
    "select_strategy",
    "validate",
]
