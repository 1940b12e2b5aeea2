#!/usr/bin/env python3
"""
Main orchestration and entry point for import-wizard.

Contains the command execution logic for each CLI subcommand. The run
command drives one ImportWizard session end to end:

    upload -> mapping review -> validation -> confirmation -> commit

Exit codes: 0 success, 1 import error or failed rows, 2 configuration error.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.prompt import Confirm

from .cli import setup_cli
from .client import HttpImportBackend, ImportBackend
from .config_loader import Config
from .errors import CommitRequestError, ConfigurationError, ImportWizardError, MappingError
from .logging_config import get_logger, setup_logging
from .mapping import check_mapping_entry, propose_mapping
from .parsers import load_upload, parse_upload
from .registry import SchemaRegistry, load_registry
from .reporting import (
    print_commit,
    print_error,
    print_mapping,
    print_targets,
    print_validation,
)
from .templates import render_template, write_template
from .wizard import ImportWizard

logger = get_logger(__name__)


def create_backend(config: Config) -> ImportBackend:
    """Backend used by the run command."""
    return HttpImportBackend.from_config(config)


def parse_mapping_overrides(values: List[str]) -> List[Tuple[str, Optional[str]]]:
    """Parse FIELD=HEADER options; an empty HEADER unmaps the field."""
    overrides = []
    for value in values:
        field_key, sep, header = value.partition("=")
        if not sep or not field_key.strip():
            raise MappingError(f"Invalid mapping '{value}', expected FIELD=HEADER")
        overrides.append((field_key.strip(), header.strip() or None))
    return overrides


def run_targets_command(args, config: Config, registry: SchemaRegistry, console: Console) -> int:
    print_targets(registry.list_targets(), console)
    return 0


def run_template_command(args, config: Config, registry: SchemaRegistry, console: Console) -> int:
    target = registry.get_target(args.target)
    if args.output:
        path = write_template(target, args.output)
        console.print(f"[green]✓[/green] template  {target.id}  out: {path.as_posix()}")
    else:
        sys.stdout.write(render_template(target))
    return 0


def run_map_command(args, config: Config, registry: SchemaRegistry, console: Console) -> int:
    """Show the proposed mapping without contacting the backend."""
    target = registry.get_target(args.target)
    data, file_format = load_upload(Path(args.file))
    sheet = parse_upload(data, file_format, sheet=args.sheet, delimiter=args.delimiter)

    proposal = propose_mapping(target, sheet.headers, config.fuzzy_config)
    mapping = proposal.mapping.copy()
    for field_key, header in parse_mapping_overrides(args.map):
        check_mapping_entry(target, sheet.headers, field_key, header)
        mapping.set(field_key, header)

    console.print(
        f"  in:  {Path(args.file).as_posix()}  rows={len(sheet.rows)}  columns={len(sheet.headers)}"
    )
    missing = print_mapping(target, mapping, proposal, console)
    return 1 if missing else 0


async def run_import(
    args, config: Config, registry: SchemaRegistry, backend: ImportBackend, console: Console
) -> int:
    """Drive one wizard session for the run command."""
    wizard = ImportWizard.for_target(
        registry,
        args.target,
        backend,
        fuzzy_config=config.fuzzy_config,
        allow_partial_commit=config.allow_partial_commit,
    )
    data, file_format = load_upload(Path(args.file))
    proposal = await wizard.upload(
        data, file_format, sheet=args.sheet, delimiter=args.delimiter
    )
    for field_key, header in parse_mapping_overrides(args.map):
        wizard.set_mapping(field_key, header)

    print_mapping(wizard.target, wizard.mapping, proposal, console)
    outcome = await wizard.validate()
    print_validation(outcome, config.preview_limit, console)

    if not wizard.can_commit:
        if not outcome.valid_rows:
            print_error("No valid rows to import", console)
        else:
            print_error(
                f"{len(outcome.invalid_rows)} invalid rows must be fixed before importing",
                console,
            )
        wizard.cancel()
        return 1

    if not args.yes:
        question = f"Import {len(outcome.valid_rows)} valid rows into {wizard.target.display_name}?"
        if not Confirm.ask(question, console=console):
            wizard.cancel()
            console.print("Import cancelled, nothing was committed")
            return 0

    # A failed commit imports nothing and keeps the valid rows, so it can be retried
    while True:
        try:
            result = await wizard.commit()
            break
        except CommitRequestError:
            print_error(wizard.last_error, console)
            if args.yes or not Confirm.ask("Retry commit?", console=console):
                wizard.cancel()
                return 1

    print_commit(result, console)
    return 0 if result.failure_count == 0 else 1


def run_run_command(args, config: Config, registry: SchemaRegistry, console: Console) -> int:
    backend = create_backend(config)
    try:
        return asyncio.run(run_import(args, config, registry, backend, console))
    finally:
        close = getattr(backend, "close", None)
        if close is not None:
            close()


COMMAND_HANDLERS = {
    "targets": run_targets_command,
    "template": run_template_command,
    "map": run_map_command,
    "run": run_run_command,
}


def main(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    """Main entry point for the application."""
    console = console or Console()
    try:
        args, config = setup_cli(argv)
        setup_logging(args.log_level)
        registry = load_registry(config.targets_file)
        handler = COMMAND_HANDLERS[args.command]
        return handler(args, config, registry, console)
    except ConfigurationError as e:
        logger.debug(f"Configuration error: {e}")
        print_error(str(e), console)
        return 2
    except ImportWizardError as e:
        logger.debug(f"Import failed: {e}")
        print_error(str(e), console)
        return 1


if __name__ == "__main__":
    sys.exit(main())
