"""Merge definition validation.

Runs before any statement is issued. The first violation found is raised,
in the order: target table, mapped columns, key column, then per-column
checks in definition order, and finally that some WHEN clause applies.
"""

from sqlmerge.config import TEMPORARY_TABLE_PREFIX, MergeDefinition, generate_temporary_table_name
from sqlmerge.exceptions import ValidationError
from sqlmerge.generator import ACTION_COLUMN, CURRENT_PREFIX, ORIGINAL_PREFIX
from sqlmerge.identifiers import parse_identifier


def validate(definition: MergeDefinition, is_bulk: bool) -> bool:
    """
    Validate a merge definition, filling in defaults.

    Mutates ``definition``: an empty temporary table name is generated, a
    name without the ``#`` marker is prefixed, and empty target column
    names default to their source column.

    Args:
        definition: The merge definition to check.
        is_bulk: Whether the bulk strategy was selected; bulk loading needs
            a native type for every mapped column.

    Returns:
        True when the definition is valid.

    Raises:
        ValidationError: On the first violation found.
    """
    if not definition.target_table:
        raise ValidationError("TargetTable is required for the merge definition.")

    if not definition.temporary_table:
        definition.temporary_table = generate_temporary_table_name()

    if not definition.temporary_table.startswith(TEMPORARY_TABLE_PREFIX):
        definition.temporary_table = TEMPORARY_TABLE_PREFIX + definition.temporary_table

    merge_columns = definition.mapped_columns()

    if not merge_columns:
        raise ValidationError(
            "At least one column is required for the merge definition.",
            target_table=definition.target_table,
        )

    if not any(c.is_key for c in merge_columns):
        raise ValidationError(
            "At least one column is required to be marked as a key for the merge definition.",
            target_table=definition.target_table,
        )

    for index, column in enumerate(merge_columns):
        if not column.source_column:
            raise ValidationError(
                f"SourceColumn is required for column index {index} of the merge definition.",
                target_table=definition.target_table,
            )

        if not column.target_column:
            column.target_column = column.source_column

        if is_bulk and not column.native_type:
            raise ValidationError(
                f"NativeType is required for column '{column.source_column}' "
                "when the bulk load strategy is used.",
                target_table=definition.target_table,
            )

    if not _has_action(definition):
        raise ValidationError(
            "At least one of insert, update or delete must apply to the merge definition.",
            target_table=definition.target_table,
        )

    return True


def _has_action(definition: MergeDefinition) -> bool:
    # a MERGE without any WHEN clause is not valid T-SQL
    columns = definition.mapped_columns()
    return (
        definition.include_delete
        or (definition.include_insert and any(c.can_insert for c in columns))
        or (definition.include_update and any(c.can_update for c in columns))
    )


def validate_output_columns(definition: MergeDefinition) -> bool:
    """
    Check that the OUTPUT clause aliases of a definition are unambiguous.

    Each mapped column is projected as ``Original<name>`` and
    ``Current<name>`` next to the ``Action`` discriminator; two columns that
    only differ by bracket quoting would produce the same alias.

    Raises:
        ValidationError: When two projections share an alias.
    """
    seen = {ACTION_COLUMN.lower()}
    for column in definition.mapped_columns():
        name = parse_identifier(column.source_column)
        for alias in (ORIGINAL_PREFIX + name, CURRENT_PREFIX + name):
            if alias.lower() in seen:
                raise ValidationError(
                    f"Output column '{alias}' is produced more than once; "
                    f"rename or ignore column '{column.source_column}'.",
                    target_table=definition.target_table,
                )
            seen.add(alias.lower())

    return True
