"""Tests for configuration models."""

import pytest
from pydantic import ValidationError

from sqlmerge.config import (
    ColumnMapping,
    MergeDefinition,
    MergeMode,
    MergeProjectConfig,
    MergeSettings,
    SqlServerAuthMode,
    SqlServerConnectionConfig,
    generate_temporary_table_name,
)
from sqlmerge.generator import build_merge
from sqlmerge.validation import validate


class TestColumnMapping:
    def test_defaults(self):
        column = ColumnMapping(source_column="Name")

        assert column.can_bulk_load is True
        assert column.can_insert is True
        assert column.can_update is True
        assert column.is_key is False
        assert column.is_ignored is False

    def test_key_is_never_updated(self):
        column = ColumnMapping(source_column="Id", is_key=True, can_update=True)

        assert column.can_update is False

    def test_key_assignment_disables_update(self):
        definition = MergeDefinition(target_table="dbo.User")
        definition.column("Id").is_key = True
        definition.column("Name")

        assert definition.column("Id").can_update is False

        validate(definition, is_bulk=False)
        sql = build_merge(definition)
        assert "UPDATE SET t.[Name] = s.[Name]" in sql
        assert "t.[Id] = s.[Id]," not in sql

    def test_key_column_cannot_be_made_updatable(self):
        column = ColumnMapping(source_column="Id", is_key=True)

        column.can_update = True

        assert column.can_update is False

    def test_assignment_is_type_checked(self):
        with pytest.raises(ValidationError):
            ColumnMapping(source_column="Id").is_key = "not a flag"

    def test_str(self):
        text = str(ColumnMapping(source_column="Id", target_column="UserId", native_type="int"))

        assert "Source: Id" in text
        assert "Target: UserId" in text
        assert "NativeType: int" in text


class TestMergeDefinition:
    def test_defaults(self):
        definition = MergeDefinition()

        assert definition.include_insert is True
        assert definition.include_update is True
        assert definition.include_delete is False
        assert definition.include_output is False
        assert definition.identity_insert is False
        assert definition.mode == MergeMode.AUTO
        assert definition.temporary_table.startswith("#Merge")

    def test_temporary_tables_are_unique(self):
        assert MergeDefinition().temporary_table != MergeDefinition().temporary_table
        assert generate_temporary_table_name() != generate_temporary_table_name()

    def test_column_lists(self):
        definition = MergeDefinition(
            columns=[
                ColumnMapping(source_column="Id", is_key=True),
                ColumnMapping(source_column="Name"),
                ColumnMapping(source_column="Audit", can_insert=False, can_update=False),
                ColumnMapping(source_column="Notes", is_ignored=True),
            ]
        )

        assert [c.source_column for c in definition.mapped_columns()] == ["Id", "Name", "Audit"]
        assert [c.source_column for c in definition.merge_columns()] == ["Id", "Name"]
        assert [c.source_column for c in definition.key_columns()] == ["Id"]

    def test_column_finds_or_adds(self):
        definition = MergeDefinition(columns=[ColumnMapping(source_column="Id")])

        assert definition.column("Id") is definition.columns[0]

        added = definition.column("Name")
        assert added.target_column == "Name"
        assert definition.columns[-1] is added

    def test_mode_from_string(self):
        assert MergeDefinition(mode="bulk_load").mode == MergeMode.BULK_LOAD


class TestMergeSettings:
    def test_defaults(self):
        settings = MergeSettings()

        assert settings.bulk_threshold == 1000
        assert settings.bulk_batch_size == 1000

    def test_rejects_non_positive_batch_size(self):
        with pytest.raises(ValidationError):
            MergeSettings(bulk_batch_size=0)


class TestSqlServerConnectionConfig:
    def test_sql_auth_requires_credentials(self):
        with pytest.raises(ValidationError, match="requires both"):
            SqlServerConnectionConfig(server="db", database="crm", username="loader")

    def test_trusted_auth(self):
        config = SqlServerConnectionConfig(server="db", database="crm", auth_mode="trusted")

        assert config.auth_mode == SqlServerAuthMode.TRUSTED
        assert config.port == 1433
        assert config.encrypt is True


class TestMergeProjectConfig:
    def test_requires_columns(self):
        with pytest.raises(ValidationError, match="at least one column"):
            MergeProjectConfig(merge={"target_table": "dbo.User"})

    def test_parses_nested(self):
        config = MergeProjectConfig(
            merge={
                "target_table": "dbo.User",
                "columns": [{"source_column": "Id", "native_type": "int", "is_key": True}],
            },
            settings={"bulk_threshold": 10},
            logging={"level": "DEBUG"},
        )

        assert config.merge.key_columns()[0].can_update is False
        assert config.settings.bulk_threshold == 10
        assert config.logging.level.value == "DEBUG"
        assert config.connection is None
