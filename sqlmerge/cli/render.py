"""Render command implementation."""

import pandas as pd
import yaml

from sqlmerge.exceptions import DataMergeError
from sqlmerge.generator import build_merge, build_table
from sqlmerge.sources import DataFrameRowSource
from sqlmerge.strategy import MergeStrategy, select_strategy
from sqlmerge.utils.config_loader import load_project_config
from sqlmerge.validation import validate, validate_output_columns


def render_command(args):
    """Print the statements a merge would run, without connecting."""
    try:
        config = load_project_config(args.config, env=args.env)
        definition = config.merge

        rows = DataFrameRowSource(pd.read_csv(args.data)) if args.data else None
        row_count = len(rows) if rows is not None else (args.rows or 0)

        if args.bulk:
            strategy = MergeStrategy.BULK_LOAD
        else:
            strategy = select_strategy(definition.mode, row_count, config.settings.bulk_threshold)

        validate(definition, is_bulk=strategy == MergeStrategy.BULK_LOAD)
        if definition.include_output:
            validate_output_columns(definition)

        if strategy == MergeStrategy.BULK_LOAD:
            print(build_table(definition))
            print()
            print(build_merge(definition))
        elif rows is None:
            print("Rendering the inline statement needs the source rows: pass --data")
            return 1
        else:
            print(build_merge(definition, rows))

        return 0
    except (DataMergeError, ValueError, OSError, yaml.YAMLError) as e:
        print(f"Render failed: {e}")
        return 1
