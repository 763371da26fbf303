"""Main CLI entry point."""

import argparse
import sys

from sqlmerge.cli.render import render_command
from sqlmerge.cli.run import run_command
from sqlmerge.cli.validate import validate_command
from sqlmerge.utils.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlmerge",
        description="Merge tabular data into SQL Server tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sqlmerge validate merge.yaml                       Validate a merge project file
  sqlmerge render merge.yaml --data users.csv        Print the MERGE statement
  sqlmerge render merge.yaml --rows 5000 --bulk      Print the bulk DDL and MERGE
  sqlmerge run merge.yaml --data users.csv --output  Merge and show changed rows
        """,
    )

    # Global arguments
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging verbosity (default: INFO, or the project's logging.level for run)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # sqlmerge validate
    validate_parser = subparsers.add_parser("validate", help="Validate a merge project file")
    validate_parser.add_argument("config", help="Path to YAML config file")
    validate_parser.add_argument("--env", default=None, help="Environment overrides to apply")

    # sqlmerge render
    render_parser = subparsers.add_parser("render", help="Print the statements a merge would run")
    render_parser.add_argument("config", help="Path to YAML config file")
    render_parser.add_argument("--env", default=None, help="Environment overrides to apply")
    render_parser.add_argument("--data", help="CSV file with the source rows")
    render_parser.add_argument(
        "--rows", type=int, default=None, help="Row count to select the strategy for"
    )
    render_parser.add_argument(
        "--bulk", action="store_true", help="Render the bulk load strategy regardless of mode"
    )

    # sqlmerge run
    run_parser = subparsers.add_parser("run", help="Merge a CSV file into SQL Server")
    run_parser.add_argument("config", help="Path to YAML config file")
    run_parser.add_argument("--env", default=None, help="Environment overrides to apply")
    run_parser.add_argument("--data", required=True, help="CSV file with the source rows")
    run_parser.add_argument(
        "--output", action="store_true", help="Capture and print the changed rows"
    )

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(structured=False, level=args.log_level or "INFO")

    if args.command == "validate":
        return validate_command(args)
    elif args.command == "render":
        return render_command(args)
    elif args.command == "run":
        return run_command(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
