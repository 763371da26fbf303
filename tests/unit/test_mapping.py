"""Tests for the fluent column mapping."""

from dataclasses import dataclass, field

from sqlmerge.config import MergeDefinition
from sqlmerge.mapping import MergeMapping
from sqlmerge.metadata import DataclassMetadataProvider


@dataclass
class Customer:
    __tablename__ = "crm.Customer"

    id: int = field(metadata={"key": True})
    email: str = ""


class TestMergeMapping:
    def test_column_adds_mapping(self):
        definition = MergeDefinition()
        MergeMapping(definition).column("EmailAddress").target_column("Email").native_type(
            "nvarchar(256)"
        )

        column = definition.columns[0]
        assert column.source_column == "EmailAddress"
        assert column.target_column == "Email"
        assert column.native_type == "nvarchar(256)"

    def test_column_reuses_existing_mapping(self):
        definition = MergeDefinition()
        mapping = MergeMapping(definition)

        mapping.column("Id").native_type("int")
        mapping.column("Id").bulk_load(False)

        assert len(definition.columns) == 1
        assert definition.columns[0].native_type == "int"
        assert definition.columns[0].can_bulk_load is False

    def test_key_disables_update(self):
        definition = MergeDefinition()
        MergeMapping(definition).column("Id").key()

        assert definition.columns[0].is_key is True
        assert definition.columns[0].can_update is False

    def test_flags(self):
        definition = MergeDefinition()
        MergeMapping(definition).column("Created").insert(True).update(False)
        MergeMapping(definition).column("Notes").ignore()

        created, notes = definition.columns
        assert created.can_insert is True
        assert created.can_update is False
        assert notes.is_ignored is True
        assert definition.mapped_columns() == [created]

    def test_source_column_rename(self):
        definition = MergeDefinition()
        MergeMapping(definition).column("Mail").source_column("Email")

        assert definition.columns[0].source_column == "Email"

    def test_auto_map(self):
        definition = MergeDefinition()
        result = MergeMapping(definition).auto_map(DataclassMetadataProvider(Customer))

        assert result.definition is definition
        assert definition.target_table == "crm.Customer"
        assert [c.source_column for c in definition.columns] == ["id", "email"]
        assert definition.key_columns()[0].source_column == "id"
