"""Fluent column mapping for merge definitions."""

from typing import Optional

from sqlmerge.config import ColumnMapping, MergeDefinition
from sqlmerge.metadata import EntityMetadataProvider, definition_from_metadata


class ColumnMappingBuilder:
    """
    Chainable setters for one :class:`ColumnMapping`.

    Example:
        >>> mapping.column("EmailAddress").target_column("Email").native_type("nvarchar(256)")
    """

    def __init__(self, column: ColumnMapping):
        self.column = column

    def source_column(self, name: str) -> "ColumnMappingBuilder":
        self.column.source_column = name
        return self

    def target_column(self, name: str) -> "ColumnMappingBuilder":
        self.column.target_column = name
        return self

    def native_type(self, native_type: Optional[str]) -> "ColumnMappingBuilder":
        self.column.native_type = native_type
        return self

    def bulk_load(self, value: bool = True) -> "ColumnMappingBuilder":
        self.column.can_bulk_load = value
        return self

    def insert(self, value: bool = True) -> "ColumnMappingBuilder":
        self.column.can_insert = value
        return self

    def update(self, value: bool = True) -> "ColumnMappingBuilder":
        self.column.can_update = value
        return self

    def key(self, value: bool = True) -> "ColumnMappingBuilder":
        """Match rows on this column; key columns are never updated."""
        self.column.is_key = value
        if value:
            self.column.can_update = False
        return self

    def ignore(self, value: bool = True) -> "ColumnMappingBuilder":
        self.column.is_ignored = value
        return self


class MergeMapping:
    """Column configuration entry point handed to ``DataMerge.map`` callbacks."""

    def __init__(self, definition: MergeDefinition):
        self.definition = definition

    def column(self, source_column: str) -> ColumnMappingBuilder:
        """Builder for the column mapped from ``source_column``, added if missing."""
        return ColumnMappingBuilder(self.definition.column(source_column))

    def auto_map(self, provider: EntityMetadataProvider) -> "MergeMapping":
        definition_from_metadata(provider, self.definition)
        return self
