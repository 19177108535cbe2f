"""CLI module for dependency-ordered schema script export.

Scripts every object of a SQL Server database (or a JSON snapshot of one)
so that each script runs after the scripts of the objects it depends on.

Usage:
    db-script-export localhost Shop
    db-script-export localhost Shop -t tree -o out --script-database
    db-script-export localhost Shop -t files -o out --foreign-keys-separately
    db-script-export srv Shop --snapshot shop.json -t tree -o out
    db-script-export srv Shop Orders -t file -o out --exclude-types View,Synonym

Output types:
    stdout - all scripts to standard output (default)
    file   - one file, named after the object or database
    files  - one file per object, named <Type>.<name>.sql
    tree   - one directory per object type
"""

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from sqlalchemy.exc import SQLAlchemyError

from db_script_export.config.loader import load_export_config
from db_script_export.config.models import ExportConfig, OutputType
from db_script_export.export.scripter import DependencyGraphScripter
from db_script_export.factory import get_backend
from db_script_export.logging_setup import setup_logging

console = Console(stderr=True)

# Command-line destinations mapped onto ExportConfig fields
_CONFIG_FIELDS = {
    "server": "server",
    "database": "database",
    "object_name": "object_name",
    "output_dir": "output_directory",
    "output_type": "output_type",
    "order_file": "order_filename",
    "script_database": "script_database",
    "script_collation": "script_collation",
    "script_file_groups": "script_file_groups",
    "schema_qualify": "schema_qualify",
    "extended_properties": "extended_properties",
    "foreign_keys_separately": "foreign_keys_separately",
    "exclude_types": "exclude_types",
    "user": "user_name",
    "password": "password",
    "driver": "driver",
}


# ============================================================================
# Configuration
# ============================================================================


def build_config(args: argparse.Namespace) -> ExportConfig:
    """Merge the config file (if any) with command-line flags.

    Flags given on the command line win over the config file.

    Args:
        args: Parsed CLI arguments

    Returns:
        Validated export config

    Raises:
        FileNotFoundError: If --config names a missing file
        ValueError: If the merged settings are invalid
    """
    base = ExportConfig()
    if args.config:
        base = load_export_config(Path(args.config))

    settings = base.model_dump()
    for dest, field_name in _CONFIG_FIELDS.items():
        value = getattr(args, dest, None)
        if value is not None:
            settings[field_name] = value

    try:
        return ExportConfig(**settings)
    except ValidationError as e:
        raise ValueError(f"Invalid export settings:\n{e}") from e


# ============================================================================
# Command implementations
# ============================================================================


def cmd_export(args: argparse.Namespace) -> int:
    """Run one export.

    Args:
        args: Parsed CLI arguments

    Returns:
        0 on success, 1 on failure.
    """
    setup_logging(verbose=args.verbose)

    try:
        config = build_config(args)
        with get_backend(config, args.snapshot) as backend:
            scripter = DependencyGraphScripter(backend, backend, config)
            build_order = scripter.run()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1
    except SQLAlchemyError as e:
        console.print(f"[bold red]x[/bold red] Database error: {escape(str(e))}")
        return 1
    except Exception as e:
        console.print(f"[bold red]x[/bold red] Export failed: {escape(str(e))}")
        return 1

    if config.output_type is not OutputType.STDOUT:
        target = escape(str(scripter.writer.output_directory))
        if build_order:
            console.print(
                f"[bold green]v[/bold green] Scripted {len(build_order)} objects to "
                f"[bold cyan]{target}[/bold cyan]"
            )
        else:
            console.print(
                f"[bold green]v[/bold green] Export written to [bold cyan]{target}[/bold cyan]"
            )
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Boolean flags default to None so that an unset flag leaves the config
    file's value alone.
    """
    parser = argparse.ArgumentParser(
        prog="db-script-export",
        description="Script database objects in dependency order",
    )
    parser.add_argument("server", help="Server name (host or host\\instance)")
    parser.add_argument("database", help="Database to script")
    parser.add_argument(
        "object_name",
        nargs="?",
        default=None,
        help="Only script objects with this name",
    )

    output = parser.add_argument_group("output")
    output.add_argument(
        "--output-dir",
        "-o",
        dest="output_dir",
        help="Directory for script files (default: current directory)",
    )
    output.add_argument(
        "--output-type",
        "-t",
        choices=[t.value for t in OutputType],
        help="Output arrangement (default: stdout)",
    )
    output.add_argument(
        "--order-file",
        help="Build order filename (default: fileOrder.txt)",
    )

    scripting = parser.add_argument_group("scripting")
    scripting.add_argument(
        "--script-database",
        action="store_true",
        default=None,
        help="Script the database itself first",
    )
    scripting.add_argument(
        "--script-collation",
        action="store_true",
        default=None,
        help="Include column collations",
    )
    scripting.add_argument(
        "--script-file-groups",
        action="store_true",
        default=None,
        help="Include file group placement",
    )
    scripting.add_argument(
        "--schema-qualify",
        action="store_true",
        default=None,
        help="Qualify object names with their schema",
    )
    scripting.add_argument(
        "--extended-properties",
        action="store_true",
        default=None,
        help="Include extended properties",
    )
    scripting.add_argument(
        "--foreign-keys-separately",
        action="store_true",
        default=None,
        help="Script foreign keys after all tables (breaks table cycles)",
    )
    scripting.add_argument(
        "--exclude-types",
        help="Comma-separated object types to skip (e.g., View,Synonym)",
    )

    connection = parser.add_argument_group("connection")
    connection.add_argument(
        "--user",
        "-U",
        help="SQL login (default: integrated security)",
    )
    connection.add_argument("--password", "-P", help="SQL login password")
    connection.add_argument("--driver", help="ODBC driver name")
    connection.add_argument(
        "--snapshot",
        help="Export from a JSON snapshot instead of a live server",
    )

    parser.add_argument("--config", help="Path to export.toml")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every object visited",
    )
    parser.set_defaults(func=cmd_export)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and runs the export.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
