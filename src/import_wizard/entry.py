#!/usr/bin/env python3
"""
CLI entry point using Typer for import-wizard

Every argument is forwarded to the argparse CLI in cli.py, so
`import-wizard ...` and `python -m import_wizard ...` behave the same.
"""

import typer

from .logging_config import setup_logging
from .main import main as run_main

app = typer.Typer(
    name="import-wizard",
    help="Import Wizard - Spreadsheet import with mapping, validation and commit",
    add_completion=False,
)


@app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "help_option_names": [],
    }
)
def main(ctx: typer.Context):
    """Main entry point that delegates to the argparse CLI."""
    setup_logging()
    exit_code = run_main(list(ctx.args))
    if exit_code:
        raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
