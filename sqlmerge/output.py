"""Decoding of the rows returned by a MERGE OUTPUT clause."""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Mapping, Optional, Type

from sqlmerge.config import MergeDefinition
from sqlmerge.generator import ACTION_COLUMN, CURRENT_PREFIX, ORIGINAL_PREFIX
from sqlmerge.identifiers import parse_identifier


@dataclass
class OutputColumn:
    """Before and after values of one column of a changed row."""

    name: str
    original_value: Any = None
    current_value: Any = None
    type: Optional[Type[Any]] = None


@dataclass
class OutputRow:
    """
    One row changed by the merge.

    ``action`` is the server's verb: ``INSERT``, ``UPDATE`` or ``DELETE``.
    """

    action: str
    columns: List[OutputColumn] = field(default_factory=list)

    def __getitem__(self, name: str) -> Optional[OutputColumn]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def __iter__(self) -> Iterator[OutputColumn]:
        return iter(self.columns)


class PrefixedRecord:
    """View over an output record that resolves names with a fixed prefix."""

    def __init__(
        self,
        record: Mapping[str, Any],
        prefix: str,
        field_type: Optional[Callable[[str], Optional[type]]] = None,
    ):
        self.record = record
        self.prefix = prefix
        self._field_type = field_type

    def __getitem__(self, name: str) -> Any:
        return self.record[self.prefix + name]

    def __contains__(self, name: str) -> bool:
        return self.prefix + name in self.record

    def field_type(self, name: str) -> Optional[type]:
        if self._field_type is not None:
            found = self._field_type(self.prefix + name)
            if found is not None:
                return found

        value = self.record.get(self.prefix + name)
        return None if value is None else type(value)


def decode_output_row(
    record: Mapping[str, Any],
    definition: MergeDefinition,
    field_type: Optional[Callable[[str], Optional[type]]] = None,
) -> OutputRow:
    """
    Convert one OUTPUT record into an :class:`OutputRow`.

    Args:
        record: Column name to value mapping for the record.
        definition: The definition the statement was generated from.
        field_type: Optional lookup of a result column's runtime type.
    """
    original = PrefixedRecord(record, ORIGINAL_PREFIX, field_type)
    current = PrefixedRecord(record, CURRENT_PREFIX, field_type)

    columns = []
    for column in definition.mapped_columns():
        name = parse_identifier(column.source_column)
        columns.append(
            OutputColumn(
                name=name,
                original_value=original[name],
                current_value=current[name],
                type=current.field_type(name) or original.field_type(name),
            )
        )

    return OutputRow(action=str(record[ACTION_COLUMN]), columns=columns)
