#!/usr/bin/env python3
"""Command-line interface for RuleSort.

This module provides the ``rulesort`` command:
- Argument parsing for the sort and rule management subcommands
- Configuration file loading
- Logging setup (console, main log and file-operations log)
- Top-level error reporting and exit codes

Example:
    >>> from rulesort.cli import parse_arguments
    >>> args = parse_arguments(["sort", "--source", "/data", "--dry-run"])
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from rulesort.core.constants import RULESORT_VERSION, ConfigKey, ErrorCode, ReportKind
from rulesort.core.validators import ValidationError
from rulesort.files.actions import ActionError
from rulesort.infrastructure.config_manager import ConfigError, ConfigManager
from rulesort.infrastructure.logger import Logger, LogLevel, configure_file_logging, get_logger
from rulesort.report import ReportError
from rulesort.rules.models import RuleParseError
from rulesort.rules.rules_file import RulesFileError
from rulesort.sorter import SortError

DESCRIPTION = "RuleSort - Rule-based file sorting"

# Errors reported to the user without a traceback
HANDLED_ERRORS = (
    ConfigError,
    ValidationError,
    RuleParseError,
    RulesFileError,
    ActionError,
    SortError,
    ReportError,
)


class CLIError(Exception):
    """Exception raised for CLI-related errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="rulesort",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what would happen to the files in ~/Downloads
  rulesort sort --dry-run

  # Sort another folder with two rules only and write a CSV report
  rulesort sort --source ~/Desktop --rules photos,pdfs --report csv --output ~/reports

  # Manage rules
  rulesort add photos.yaml --overwrite
  rulesort toggle photos
  rulesort export photos --output photos.yaml
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {RULESORT_VERSION}",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Configuration file path (YAML format)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    sort_parser = subparsers.add_parser("sort", help="Sort files using the rules")
    sort_parser.add_argument(
        "--source", metavar="DIR", type=str, help="Folder to sort (default: configured source)"
    )
    sort_parser.add_argument(
        "--rules", metavar="ID,ID", type=str, help="Comma-separated rule ids to apply"
    )
    sort_parser.add_argument(
        "--dry-run", action="store_true", help="Simulate sorting without changing files"
    )
    sort_parser.add_argument(
        "--report",
        choices=[k.value for k in ReportKind],
        help="Write a report of the actions taken",
    )
    sort_parser.add_argument(
        "--output", metavar="DIR", type=str, help="Report directory (default: current directory)"
    )

    subparsers.add_parser("list", help="List all rules")

    add_parser = subparsers.add_parser("add", help="Add rule(s) from a YAML file")
    add_parser.add_argument("file", metavar="FILE", help="YAML file with one rule or a rule list")
    add_parser.add_argument(
        "--overwrite", action="store_true", help="Replace rules that have the same id"
    )

    remove_parser = subparsers.add_parser("remove", help="Remove a rule")
    remove_parser.add_argument("rule_id", metavar="ID")

    toggle_parser = subparsers.add_parser("toggle", help="Enable or disable a rule")
    toggle_parser.add_argument("rule_id", metavar="ID")

    export_parser = subparsers.add_parser("export", help="Export a rule as YAML")
    export_parser.add_argument("rule_id", metavar="ID")
    export_parser.add_argument("--output", metavar="FILE", type=str, help="Output file")

    validate_parser = subparsers.add_parser("validate", help="Validate a rule file")
    validate_parser.add_argument("file", metavar="FILE")

    template_parser = subparsers.add_parser("template", help="Write an example rule")
    template_parser.add_argument(
        "--output", metavar="FILE", type=str, default="rule_template.yaml", help="Output file"
    )

    config_parser = subparsers.add_parser("config", help="Show or reset the configuration")
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument("--show", action="store_true", help="Print the configuration")
    config_group.add_argument("--reset", action="store_true", help="Restore default settings")

    return parser


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        SystemExit: On invalid arguments or --help/--version
        CLIError: If argument validation fails
    """
    parsed = build_parser().parse_args(args)
    _validate_arguments(parsed)
    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Args:
        args: Parsed arguments namespace

    Raises:
        CLIError: If validation fails
    """
    if args.config:
        config_path = Path(args.config).expanduser()
        if config_path.exists() and not config_path.is_file():
            raise CLIError(f"Configuration path is not a file: {args.config}")

    if args.command in ("add", "validate"):
        file_path = Path(args.file).expanduser()
        if not file_path.exists():
            raise CLIError(f"File does not exist: {args.file}", ErrorCode.NOT_FOUND)
        if not file_path.is_file():
            raise CLIError(f"Not a file: {args.file}")

    if args.command == "sort":
        if args.output and not args.report:
            raise CLIError("--output requires --report")
        if args.rules is not None:
            ids = [rule_id.strip() for rule_id in args.rules.split(",") if rule_id.strip()]
            if not ids:
                raise CLIError("--rules requires at least one rule id")
            args.rules = ids


def load_config(args: argparse.Namespace) -> ConfigManager:
    """
    Load the configuration, creating the default file on first use.

    Args:
        args: Parsed arguments namespace

    Returns:
        Configuration manager

    Raises:
        ConfigError: If the file is malformed or a setting has the wrong type
    """
    config = ConfigManager()
    config.load_or_create(args.config)
    config.validate_schema()
    return config


def setup_logging(args: argparse.Namespace, config: ConfigManager) -> Logger:
    """
    Setup logging based on arguments and configuration.

    Args:
        args: Parsed arguments namespace
        config: Configuration manager

    Returns:
        Configured logger instance
    """
    level = LogLevel.DEBUG if args.debug else config.get(ConfigKey.LOG_LEVEL, "INFO")
    logger = get_logger()
    logger.set_level(level)
    # Console output stays quiet unless debugging; the main log has the details
    for handler in logger.logger.handlers:
        handler.setLevel(LogLevel.DEBUG if args.debug else LogLevel.WARNING)

    logs_folder = config.get_path(ConfigKey.LOGS_FOLDER)
    if logs_folder:
        configure_file_logging(logs_folder, level)
    return logger


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Parses arguments, loads configuration and logging, then hands control
    to :func:`rulesort.main.run_rulesort`.

    Returns:
        Process exit code
    """
    try:
        args = parse_arguments(argv)
        config = load_config(args)
        logger = setup_logging(args, config)

        from rulesort.main import run_rulesort

        return run_rulesort(args, config, logger)

    except CLIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except HANDLED_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        get_logger().exception("Unexpected error", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
