"""Tests for entity metadata providers."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Union

import pandas as pd
import pytest
from pydantic import BaseModel, Field

from sqlmerge.config import ColumnMapping, MergeDefinition
from sqlmerge.metadata import (
    DataclassMetadataProvider,
    DataFrameMetadataProvider,
    PydanticMetadataProvider,
    definition_from_metadata,
    native_type,
    pandas_native_type,
)


@dataclass
class User:
    __tablename__ = "dbo.User"

    id: int = field(metadata={"key": True, "column": "Id"})
    email: Optional[str] = field(default=None, metadata={"native_type": "nvarchar(256)"})
    created: datetime = field(default_factory=datetime.now)
    row_version: bytes = field(default=b"", metadata={"generated": True})
    display: str = field(default="", metadata={"ignore": True})


@dataclass
class Tag:
    name: str = field(metadata={"key": True})


class Product(BaseModel):
    sku: str = Field(json_schema_extra={"key": True, "native_type": "varchar(20)"})
    price: Decimal
    added: Optional[date] = None


class TestNativeType:
    @pytest.mark.parametrize(
        "py_type, expected",
        [
            (bool, "bit"),
            (int, "bigint"),
            (float, "float"),
            (Decimal, "decimal"),
            (bytes, "varbinary(MAX)"),
            (str, "nvarchar(MAX)"),
            (timedelta, "time"),
            (datetime, "datetime2"),
            (date, "date"),
            (uuid.UUID, "uniqueidentifier"),
        ],
    )
    def test_known_types(self, py_type, expected):
        assert native_type(py_type) == expected

    def test_optional_is_unwrapped(self):
        assert native_type(Optional[datetime]) == "datetime2"

    def test_unknown_types_are_sql_variant(self):
        assert native_type(dict) == "sql_variant"
        assert native_type(List[int]) == "sql_variant"
        assert native_type(Union[int, str]) == "sql_variant"

    def test_pandas_dtypes(self):
        assert pandas_native_type("int64") == "bigint"
        assert pandas_native_type("Int32") == "int"
        assert pandas_native_type("datetime64[ns]") == "datetime2"
        assert pandas_native_type("datetime64[ns, UTC]") == "datetimeoffset"
        assert pandas_native_type("object") == "nvarchar(MAX)"
        assert pandas_native_type("complex128") == "nvarchar(MAX)"


class TestDataclassMetadataProvider:
    def test_table_name_from_attribute(self):
        assert DataclassMetadataProvider(User).table_name() == "dbo.User"

    def test_table_name_defaults_to_class_name(self):
        assert DataclassMetadataProvider(Tag).table_name() == "Tag"

    def test_columns(self):
        columns = {c.name: c for c in DataclassMetadataProvider(User).columns()}

        assert list(columns) == ["id", "email", "created", "row_version", "display"]
        assert columns["id"].is_key is True
        assert columns["id"].column == "Id"
        assert columns["id"].native_type == "bigint"
        assert columns["email"].native_type == "nvarchar(256)"
        assert columns["created"].native_type == "datetime2"
        assert columns["row_version"].is_generated is True
        assert columns["display"].is_ignored is True

    def test_rejects_non_dataclass(self):
        with pytest.raises(TypeError):
            DataclassMetadataProvider(dict)


class TestPydanticMetadataProvider:
    def test_columns(self):
        provider = PydanticMetadataProvider(Product)
        columns = {c.name: c for c in provider.columns()}

        assert provider.table_name() == "Product"
        assert columns["sku"].is_key is True
        assert columns["sku"].native_type == "varchar(20)"
        assert columns["price"].native_type == "decimal"
        assert columns["added"].native_type == "date"

    def test_rejects_non_model(self):
        with pytest.raises(TypeError):
            PydanticMetadataProvider(User)


class TestDataFrameMetadataProvider:
    def test_columns(self):
        df = pd.DataFrame({"Id": [1], "Name": ["A"], "Score": [0.5], "Notes": ["x"]})
        provider = DataFrameMetadataProvider(
            df,
            keys=["Id"],
            table="dbo.User",
            ignore=["Notes"],
            native_types={"Name": "nvarchar(50)"},
        )
        columns = {c.name: c for c in provider.columns()}

        assert provider.table_name() == "dbo.User"
        assert columns["Id"].is_key and columns["Id"].native_type == "bigint"
        assert columns["Name"].native_type == "nvarchar(50)"
        assert columns["Score"].native_type == "float"
        assert columns["Notes"].is_ignored

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Key columns not found"):
            DataFrameMetadataProvider(pd.DataFrame({"Id": [1]}), keys=["UserId"])


class TestDefinitionFromMetadata:
    def test_builds_definition(self):
        definition = definition_from_metadata(DataclassMetadataProvider(User))
        columns = {c.source_column: c for c in definition.columns}

        assert definition.target_table == "dbo.User"
        assert columns["id"].target_column == "Id"
        assert columns["id"].can_update is False
        assert columns["id"].can_insert is True
        assert columns["email"].can_update is True
        assert columns["row_version"].can_insert is False
        assert columns["row_version"].can_update is False
        assert columns["display"].is_ignored is True

    def test_existing_target_table_is_kept(self):
        definition = MergeDefinition(target_table="staging.User")
        definition_from_metadata(DataclassMetadataProvider(User), definition)

        assert definition.target_table == "staging.User"

    def test_existing_columns_are_updated_in_place(self):
        existing = ColumnMapping(source_column="email", can_bulk_load=False)
        definition = MergeDefinition(columns=[existing])

        definition_from_metadata(DataclassMetadataProvider(User), definition)

        assert definition.columns[0] is existing
        assert existing.native_type == "nvarchar(256)"
        assert existing.can_bulk_load is False
        assert len(definition.columns) == 5
