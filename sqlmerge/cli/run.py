"""Run command implementation."""

from typing import List

import pandas as pd
import yaml
from rich.console import Console
from rich.table import Table

from sqlmerge.connections.sql_server import SqlServerConnection
from sqlmerge.exceptions import DataMergeError
from sqlmerge.merge import DataMerge
from sqlmerge.output import OutputRow
from sqlmerge.utils.config_loader import load_project_config
from sqlmerge.utils.logging import configure_logging
from sqlmerge.utils.logging_context import get_logging_context


def _print_output(rows: List[OutputRow]) -> None:
    table = Table(title=f"{len(rows)} changed rows")
    table.add_column("Action")

    names = [c.name for c in rows[0].columns] if rows else []
    for name in names:
        table.add_column(name)

    for row in rows:
        cells = []
        for column in row.columns:
            if row.action == "UPDATE" and column.original_value != column.current_value:
                cells.append(f"{column.original_value} -> {column.current_value}")
            elif row.action == "DELETE":
                cells.append(str(column.original_value))
            else:
                cells.append(str(column.current_value))
        table.add_row(row.action, *cells)

    Console().print(table)


def run_command(args):
    """Merge a CSV file into the configured SQL Server table."""
    try:
        config = load_project_config(args.config, env=args.env)
    except (DataMergeError, ValueError, OSError, yaml.YAMLError) as e:
        print(f"Config validation failed: {e}")
        return 1

    configure_logging(
        structured=config.logging.structured,
        level=args.log_level or config.logging.level.value,
    )
    ctx = get_logging_context()

    if config.connection is None:
        ctx.error("The project file has no 'connection' block", config=args.config)
        return 1

    connection = SqlServerConnection(config.connection)
    try:
        df = pd.read_csv(args.data)
        merge = DataMerge(connection.gateway(), config.merge, settings=config.settings)

        if args.output:
            _print_output(merge.execute_output(df))
        else:
            affected = merge.execute(df)
            print(f"Merged {len(df)} rows into {config.merge.target_table}: {affected} affected")
        return 0
    except DataMergeError as e:
        ctx.error(f"Merge failed: {e}")

        suggestions = getattr(e, "suggestions", [])
        if suggestions:
            ctx.info("💡 Suggestions:")
            for suggestion in suggestions:
                ctx.info(f"   - {suggestion}")
        return 1
    except OSError as e:
        ctx.error(f"Could not read source data: {e}", data=args.data)
        return 1
    finally:
        connection.close()
