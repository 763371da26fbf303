"""
Entity Metadata Providers
=========================

Describe the columns of an entity type so a merge definition can be built
from it instead of column by column. Providers exist for dataclasses,
pydantic models and pandas DataFrames.

Dataclass fields carry their settings in ``field(metadata=...)`` and pydantic
fields in ``Field(json_schema_extra=...)``, using the keys ``key``,
``column``, ``native_type``, ``ignore`` and ``generated``::

    @dataclass
    class User:
        __tablename__ = "dbo.User"

        id: int = field(metadata={"key": True, "column": "Id"})
        email: Optional[str] = field(default=None, metadata={"native_type": "nvarchar(256)"})
        row_version: bytes = field(default=b"", metadata={"generated": True})
"""

import dataclasses
import decimal
import types
import typing
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd
from pydantic import BaseModel

from sqlmerge.config import MergeDefinition

SQL_VARIANT = "sql_variant"

PYTHON_TO_SQL_TYPE_MAP: Dict[type, str] = {
    bool: "bit",
    int: "bigint",
    float: "float",
    decimal.Decimal: "decimal",
    bytes: "varbinary(MAX)",
    bytearray: "varbinary(MAX)",
    str: "nvarchar(MAX)",
    timedelta: "time",
    datetime: "datetime2",
    date: "date",
    time: "time",
    uuid.UUID: "uniqueidentifier",
}

PANDAS_TO_SQL_TYPE_MAP: Dict[str, str] = {
    "int8": "tinyint",
    "int16": "smallint",
    "int32": "int",
    "int64": "bigint",
    "uint8": "tinyint",
    "uint16": "int",
    "uint32": "bigint",
    "uint64": "bigint",
    "float16": "real",
    "float32": "real",
    "float64": "float",
    "bool": "bit",
    "boolean": "bit",
    "object": "nvarchar(MAX)",
    "string": "nvarchar(MAX)",
    "category": "nvarchar(MAX)",
    "timedelta64[ns]": "time",
}

_UNION_TYPES = tuple(t for t in (Union, getattr(types, "UnionType", None)) if t is not None)


@dataclass
class ColumnMetadata:
    """One column as described by an entity metadata provider."""

    name: str
    native_type: Optional[str] = None
    is_key: bool = False
    is_ignored: bool = False
    column: Optional[str] = None
    is_generated: bool = False


class EntityMetadataProvider(ABC):
    """Ordered column description of an entity type."""

    @abstractmethod
    def table_name(self) -> Optional[str]:
        pass

    @abstractmethod
    def columns(self) -> List[ColumnMetadata]:
        pass


def native_type(py_type: Any) -> str:
    """
    SQL Server type for a Python type annotation.

    ``Optional[X]`` resolves to the type of ``X``; unknown types map to
    ``sql_variant``.

    Example:
        >>> native_type(Optional[datetime])
        'datetime2'
    """
    if typing.get_origin(py_type) in _UNION_TYPES:
        args = [a for a in typing.get_args(py_type) if a is not type(None)]
        if len(args) != 1:
            return SQL_VARIANT
        py_type = args[0]

    if not isinstance(py_type, type):
        return SQL_VARIANT

    # mro order puts bool before int and datetime before date
    for base in py_type.__mro__:
        if base in PYTHON_TO_SQL_TYPE_MAP:
            return PYTHON_TO_SQL_TYPE_MAP[base]
    return SQL_VARIANT


def _column_from_settings(
    name: str, annotation: Any, settings: Mapping[str, Any]
) -> ColumnMetadata:
    return ColumnMetadata(
        name=name,
        native_type=settings.get("native_type") or native_type(annotation),
        is_key=bool(settings.get("key", False)),
        is_ignored=bool(settings.get("ignore", False)),
        column=settings.get("column"),
        is_generated=bool(settings.get("generated", False)),
    )


class DataclassMetadataProvider(EntityMetadataProvider):
    """Columns of a dataclass, in field order."""

    def __init__(self, entity_type: type):
        if not dataclasses.is_dataclass(entity_type):
            raise TypeError(f"{entity_type!r} is not a dataclass")
        self.entity_type = entity_type

    def table_name(self) -> Optional[str]:
        return getattr(self.entity_type, "__tablename__", None) or self.entity_type.__name__

    def columns(self) -> List[ColumnMetadata]:
        hints = typing.get_type_hints(self.entity_type)
        return [
            _column_from_settings(f.name, hints.get(f.name, f.type), f.metadata)
            for f in dataclasses.fields(self.entity_type)
        ]


class PydanticMetadataProvider(EntityMetadataProvider):
    """Columns of a pydantic model, in field order."""

    def __init__(self, model: type):
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise TypeError(f"{model!r} is not a pydantic model")
        self.model = model

    def table_name(self) -> Optional[str]:
        return getattr(self.model, "__tablename__", None) or self.model.__name__

    def columns(self) -> List[ColumnMetadata]:
        columns = []
        for name, info in self.model.model_fields.items():
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            columns.append(_column_from_settings(name, info.annotation, extra))
        return columns


def pandas_native_type(dtype: Any) -> str:
    """SQL Server type for a pandas dtype."""
    dtype_str = str(dtype).lower()
    if dtype_str.startswith("datetime64"):
        return "datetimeoffset" if "," in dtype_str else "datetime2"
    return PANDAS_TO_SQL_TYPE_MAP.get(dtype_str, "nvarchar(MAX)")


class DataFrameMetadataProvider(EntityMetadataProvider):
    """
    Columns of a pandas DataFrame, typed from its dtypes.

    Args:
        df: The frame to describe.
        keys: Columns to match rows on.
        table: Target table name.
        ignore: Columns to leave out of the merge.
        native_types: Per-column overrides of the inferred types.
    """

    def __init__(
        self,
        df: pd.DataFrame,
        keys: Iterable[str] = (),
        table: Optional[str] = None,
        ignore: Iterable[str] = (),
        native_types: Optional[Dict[str, str]] = None,
    ):
        self.df = df
        self.keys = set(keys)
        self.table = table
        self.ignore = set(ignore)
        self.native_types = native_types or {}

        missing = sorted(self.keys - {str(c) for c in df.columns})
        if missing:
            raise ValueError(f"Key columns not found in DataFrame: {missing}")

    def table_name(self) -> Optional[str]:
        return self.table

    def columns(self) -> List[ColumnMetadata]:
        return [
            ColumnMetadata(
                name=str(name),
                native_type=self.native_types.get(str(name)) or pandas_native_type(dtype),
                is_key=str(name) in self.keys,
                is_ignored=str(name) in self.ignore,
            )
            for name, dtype in self.df.dtypes.items()
        ]


def definition_from_metadata(
    provider: EntityMetadataProvider, definition: Optional[MergeDefinition] = None
) -> MergeDefinition:
    """
    Populate a merge definition from entity metadata.

    The target table is only set when the definition has none. Each described
    column is found by source name, or added, and then overwritten: key and
    generated columns are never updated and generated columns never inserted.
    """
    if definition is None:
        definition = MergeDefinition()

    if not definition.target_table:
        definition.target_table = provider.table_name()

    for meta in provider.columns():
        column = definition.column(meta.name)
        column.target_column = meta.column or meta.name
        column.native_type = meta.native_type
        column.is_key = meta.is_key
        column.is_ignored = meta.is_ignored
        column.can_update = not meta.is_key and not meta.is_generated
        column.can_insert = not meta.is_generated

    return definition
