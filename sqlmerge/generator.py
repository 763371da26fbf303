"""T-SQL statement generation for merge operations.

Two statements are produced: the DDL for the temporary table used by the
bulk strategy, and the MERGE statement itself. The MERGE reads its source
either from that temporary table or from a VALUES list embedding the rows.
"""

from typing import List, Optional

from sqlmerge.config import ColumnMapping, MergeDefinition
from sqlmerge.exceptions import ValidationError
from sqlmerge.identifiers import (
    format_literal,
    parse_identifier,
    quote_identifier,
    table_identifier,
)
from sqlmerge.sources import RowSource

ORIGINAL_PREFIX = "Original"
CURRENT_PREFIX = "Current"
ACTION_COLUMN = "Action"

INDENT = " " * 4


def build_table(definition: MergeDefinition) -> str:
    """
    Build the CREATE TABLE statement for the temporary table.

    Every mapped column is nullable; constraints are enforced by the target
    table when the MERGE runs.
    """
    column_lines = [
        f"{INDENT}{quote_identifier(c.source_column)} {c.native_type} NULL"
        for c in definition.mapped_columns()
    ]

    sql_parts = [
        f"CREATE TABLE {table_identifier(definition.temporary_table)}",
        "(",
        ",\n".join(column_lines),
        ")",
    ]
    return "\n".join(sql_parts)


def build_merge(definition: MergeDefinition, rows: Optional[RowSource] = None) -> str:
    """
    Build the MERGE statement.

    Target column names default to their source column. A WHEN clause with
    no insertable or updatable columns is left out.

    Args:
        definition: A merge definition, normally validated first.
        rows: Source rows to embed as a VALUES list. When omitted the
            statement selects from the definition's temporary table.

    Returns:
        T-SQL text, terminated with ``;``.
    """
    _check_renderable(definition)

    merge_columns = definition.merge_columns()
    target = table_identifier(definition.target_table)
    identity_insert = definition.identity_insert and definition.include_insert

    sql_parts: List[str] = []

    if identity_insert:
        sql_parts.append(f"SET IDENTITY_INSERT {target} ON;")
        sql_parts.append("")

    sql_parts.append(f"MERGE INTO {target} AS t")

    if rows is None:
        sql_parts.extend(_using_select(definition, merge_columns))
    else:
        sql_parts.extend(_using_values(merge_columns, rows))

    sql_parts.append(_join(merge_columns))
    sql_parts.extend(_insert(definition))
    sql_parts.extend(_update(definition))
    sql_parts.extend(_delete(definition))
    sql_parts.extend(_output(definition))

    # MERGE must be terminated with a semicolon
    sql_parts.append(";")

    if identity_insert:
        sql_parts.append(f"SET IDENTITY_INSERT {target} OFF;")

    return "\n".join(sql_parts)


def _target(column: ColumnMapping) -> str:
    return column.target_column or column.source_column


def _check_renderable(definition: MergeDefinition) -> None:
    if not definition.target_table:
        raise ValidationError("TargetTable is required to build a merge statement.")

    for index, column in enumerate(definition.mapped_columns()):
        if not column.source_column:
            raise ValidationError(
                f"SourceColumn is required for column index {index} to build a merge statement.",
                target_table=definition.target_table,
            )

    if not definition.key_columns():
        raise ValidationError(
            "At least one key column is required to build a merge statement.",
            target_table=definition.target_table,
        )


def _using_select(definition: MergeDefinition, merge_columns: List[ColumnMapping]) -> List[str]:
    select_list = ", ".join(quote_identifier(c.source_column) for c in merge_columns)
    return [
        "USING",
        "(",
        f"{INDENT}SELECT {select_list}",
        f"{INDENT}FROM {table_identifier(definition.temporary_table)}",
        ") AS s",
    ]


def _using_values(merge_columns: List[ColumnMapping], rows: RowSource) -> List[str]:
    positions = [rows.index_of(c.source_column) for c in merge_columns]
    alias_list = ", ".join(quote_identifier(c.source_column) for c in merge_columns)

    value_rows = []
    for row in rows:
        values = ", ".join(
            "NULL" if position is None else format_literal(row[position]) for position in positions
        )
        value_rows.append(f"{INDENT}({values})")

    if not value_rows:
        # an empty VALUES list is not valid T-SQL
        nulls = ", ".join("NULL" for _ in merge_columns)
        return [
            "USING",
            "(",
            f"{INDENT}SELECT {nulls}",
            f"{INDENT}WHERE 1 = 0",
            f") AS s ({alias_list})",
        ]

    return [
        "USING",
        "(",
        f"{INDENT}VALUES",
        ",\n".join(value_rows),
        f") AS s ({alias_list})",
    ]


def _join(merge_columns: List[ColumnMapping]) -> str:
    predicate = " AND ".join(
        f"t.{quote_identifier(_target(c))} = s.{quote_identifier(c.source_column)}"
        for c in merge_columns
        if c.is_key
    )
    return f"ON ({predicate})"


def _insert(definition: MergeDefinition) -> List[str]:
    if not definition.include_insert:
        return []

    columns = [c for c in definition.mapped_columns() if c.can_insert]
    if not columns:
        return []

    target_list = ", ".join(quote_identifier(_target(c)) for c in columns)
    source_list = ", ".join(f"s.{quote_identifier(c.source_column)}" for c in columns)

    return [
        "WHEN NOT MATCHED BY TARGET THEN",
        f"{INDENT}INSERT ({target_list})",
        f"{INDENT}VALUES ({source_list})",
    ]


def _update(definition: MergeDefinition) -> List[str]:
    if not definition.include_update:
        return []

    columns = [c for c in definition.mapped_columns() if c.can_update]
    if not columns:
        return []

    assignments = f",\n{INDENT * 2}".join(
        f"t.{quote_identifier(_target(c))} = s.{quote_identifier(c.source_column)}"
        for c in columns
    )

    return [
        "WHEN MATCHED THEN",
        f"{INDENT}UPDATE SET {assignments}",
    ]


def _delete(definition: MergeDefinition) -> List[str]:
    if not definition.include_delete:
        return []

    return [
        "WHEN NOT MATCHED BY SOURCE THEN",
        f"{INDENT}DELETE",
    ]


def _output(definition: MergeDefinition) -> List[str]:
    if not definition.include_output:
        return []

    projections = [f"$action AS {quote_identifier(ACTION_COLUMN)}"]
    for column in definition.mapped_columns():
        source = quote_identifier(column.source_column)
        name = parse_identifier(column.source_column)
        projections.append(f"DELETED.{source} AS {quote_identifier(ORIGINAL_PREFIX + name)}")
        projections.append(f"INSERTED.{source} AS {quote_identifier(CURRENT_PREFIX + name)}")

    return ["OUTPUT " + f",\n{INDENT}".join(projections)]
