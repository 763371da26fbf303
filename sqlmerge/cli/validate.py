"""Validate command implementation."""

import yaml

from sqlmerge.config import MergeMode
from sqlmerge.exceptions import DataMergeError
from sqlmerge.utils.config_loader import load_project_config
from sqlmerge.utils.logging_context import get_logging_context
from sqlmerge.validation import validate, validate_output_columns


def validate_command(args):
    """Validate a merge project file without touching the database."""
    ctx = get_logging_context()
    try:
        config = load_project_config(args.config, env=args.env)
        definition = config.merge

        validate(definition, is_bulk=definition.mode == MergeMode.BULK_LOAD)
        if definition.include_output:
            validate_output_columns(definition)

        untyped = [c.source_column for c in definition.mapped_columns() if not c.native_type]
        if definition.mode == MergeMode.AUTO and untyped:
            ctx.warning(
                f"Columns without native_type fail once more than "
                f"{config.settings.bulk_threshold} rows switch auto mode to bulk loading",
                columns=untyped,
            )

        print(
            f"Config is valid: merge into {definition.target_table} "
            f"({len(definition.mapped_columns())} columns, mode={definition.mode.value})"
        )
        return 0
    except (DataMergeError, ValueError, OSError, yaml.YAMLError) as e:
        print(f"Config validation failed: {e}")
        return 1
