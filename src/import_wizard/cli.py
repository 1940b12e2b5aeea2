#!/usr/bin/env python3
"""
CLI parsing and argument handling for import-wizard.

Contains all CLI parsing and argument handling including:
- argparse setup and configuration
- subcommands definition (targets, template, map, run)
- help and version handling
- merging CLI overrides into the loaded configuration
"""

import argparse
from pathlib import Path
from typing import List, Optional, Tuple

from . import __version__
from .config_loader import Config, load_config
from .logging_config import get_logger

logger = get_logger(__name__)

COMMANDS = ("targets", "template", "map", "run")


def _add_file_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-t", "--target", required=True, help="Import target id (see 'targets')"
    )
    parser.add_argument("file", help="Spreadsheet to import (.csv, .tsv, .txt, .xlsx)")
    parser.add_argument(
        "--sheet", help="Worksheet name for workbooks (default: first non-empty sheet)"
    )
    parser.add_argument(
        "--delimiter", help="Delimiter for text files (default: ',' or tab for .tsv)"
    )
    parser.add_argument(
        "-m",
        "--map",
        action="append",
        default=[],
        metavar="FIELD=HEADER",
        help="Map a system field to a file column; 'FIELD=' unmaps it (repeatable)",
    )


def _add_fuzzy_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--fuzzy-threshold",
        type=float,
        help="Similarity threshold for column suggestions (0.0-1.0)",
    )
    parser.add_argument(
        "--max-suggestions",
        type=int,
        help="Maximum column suggestions per unmapped field",
    )
    parser.add_argument(
        "--disable-fuzzy",
        action="store_true",
        help="Do not suggest columns for unmapped fields",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="import-wizard",
        description="Import Wizard - Spreadsheet import with mapping, validation and commit",
    )
    parser.add_argument(
        "--version", action="version", version=f"import-wizard {__version__}"
    )
    parser.add_argument(
        "--config", type=Path, help="Path to config.yaml (default: ./config/config.yaml)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--targets-file", help="YAML file with extra import targets"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("targets", help="List the available import targets")

    template_parser = subparsers.add_parser(
        "template", help="Write a CSV template for an import target"
    )
    template_parser.add_argument(
        "-t", "--target", required=True, help="Import target id (see 'targets')"
    )
    template_parser.add_argument(
        "-o", "--output", help="Output file or directory (default: print to stdout)"
    )

    map_parser = subparsers.add_parser(
        "map", help="Show the proposed column mapping for a file"
    )
    _add_file_arguments(map_parser)
    _add_fuzzy_arguments(map_parser)

    run_parser = subparsers.add_parser(
        "run", help="Map, validate and commit a file"
    )
    _add_file_arguments(run_parser)
    _add_fuzzy_arguments(run_parser)
    run_parser.add_argument(
        "-y", "--yes", action="store_true", help="Commit without asking for confirmation"
    )
    run_parser.add_argument(
        "--require-all-valid",
        action="store_true",
        help="Refuse to commit while any row is invalid",
    )
    run_parser.add_argument("--backend-url", help="Backend base URL")
    run_parser.add_argument(
        "--token", dest="auth_token", help="Bearer token for the backend"
    )
    run_parser.add_argument(
        "--timeout", dest="timeout_seconds", type=float, help="Request timeout in seconds"
    )
    run_parser.add_argument(
        "--preview-limit", type=int, help="Number of valid rows to preview"
    )

    return parser


def setup_cli(argv: Optional[List[str]] = None) -> Tuple[argparse.Namespace, Config]:
    """
    Parse arguments and load the configuration they point at.

    Returns:
        Tuple of (args, config) with CLI overrides already merged

    Raises:
        ConfigurationError: If the config file or an override is invalid
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        parser.exit(2)

    config = load_config(args.config)
    config.merge_with_cli_args(args)
    logger.debug(f"Effective configuration: backend_url={config.backend_url}")
    return args, config
