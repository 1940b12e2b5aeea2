#!/usr/bin/env python3
"""
Console reporting for import-wizard.

Renders each wizard stage with Rich:
- Import target catalog
- Column mapping review (required markers, ambiguity, suggestions)
- Validation summary with invalid rows and a preview of valid rows
- Commit result with both success and failure counts
"""

from typing import List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from .commit import CommitOutcome
from .mapping import ColumnMapping, MappingProposal
from .schema import ImportTarget
from .transformer import CanonicalRecord
from .validation import ValidationOutcome


def _format_value(value) -> str:
    return "" if value is None else str(value)


def print_targets(targets: Sequence[ImportTarget], console: Optional[Console] = None) -> None:
    """Print the import target catalog."""
    console = console or Console()
    table = Table(title="Import targets")
    table.add_column("id")
    table.add_column("name")
    table.add_column("collection", style="dim")
    table.add_column("fields")
    table.add_column("required")

    for target in targets:
        table.add_row(
            target.id,
            target.display_name,
            target.target_collection,
            str(len(target.fields)),
            ", ".join(f.label for f in target.required_fields),
        )

    console.print(table)


def print_mapping(
    target: ImportTarget,
    mapping: ColumnMapping,
    proposal: Optional[MappingProposal] = None,
    console: Optional[Console] = None,
) -> List[str]:
    """
    Print the mapping review table.

    Returns:
        Labels of required fields that are still unmapped
    """
    console = console or Console()
    table = Table(title=f"Column mapping: {target.display_name}")
    table.add_column("system field")
    table.add_column("key", style="dim")
    table.add_column("required")
    table.add_column("file column")
    table.add_column("note")

    missing = []
    for target_field in target.fields:
        header = mapping.get(target_field.key)
        note = ""
        if proposal is not None and header and proposal.is_ambiguous(target_field.key):
            note = "[yellow]ambiguous, please confirm[/yellow]"
        elif not header and proposal is not None:
            suggestions = proposal.suggestions.get(target_field.key, [])
            if suggestions:
                note = "did you mean: " + ", ".join(
                    f"{h} ({score:.2f})" for h, score in suggestions
                )
        if not header and target_field.required:
            missing.append(target_field.label)

        table.add_row(
            target_field.label,
            target_field.key,
            "[bold]KEY[/bold]" if target_field.required else "",
            header or "[dim]Ignore / unmapped[/dim]",
            note,
        )

    console.print(table)
    if missing:
        console.print(f"[red]Missing required mappings: {', '.join(missing)}[/red]")
    else:
        console.print("[green]✓[/green] All required fields are mapped")
    return missing


def _preview_table(records: Sequence[CanonicalRecord], keys: Sequence[str]) -> Table:
    table = Table()
    table.add_column("row", style="dim")
    for key in keys:
        table.add_column(key)
    for record in records:
        table.add_row(
            str(record.row_index),
            *[_format_value(record.fields.get(key)) for key in keys],
        )
    return table


def print_validation(
    outcome: ValidationOutcome,
    preview_limit: int = 10,
    console: Optional[Console] = None,
) -> None:
    """Print the validation partition; both row listings stop at preview_limit."""
    console = console or Console()
    valid_count = len(outcome.valid_rows)
    invalid_count = len(outcome.invalid_rows)

    check_color = "green" if invalid_count == 0 else "yellow"
    check_mark = "✓" if invalid_count == 0 else "⚠"
    console.print(
        f"[{check_color}]{check_mark}[/{check_color}] validate  "
        f"total={outcome.total}  valid={valid_count}  invalid={invalid_count}"
    )

    for error in outcome.system_errors:
        console.print(f"  [red]system error:[/red] {error}")

    if outcome.invalid_rows and preview_limit > 0:
        shown = outcome.invalid_rows[:preview_limit]
        console.print(f"Invalid rows (first {len(shown)} of {invalid_count})")
        table = Table()
        table.add_column("row", style="dim")
        table.add_column("errors", style="red")
        for record in shown:
            table.add_row(str(record.row_index), "; ".join(record.errors))
        console.print(table)
        if invalid_count > len(shown):
            console.print(f"  ... and {invalid_count - len(shown)} more invalid rows")

    if outcome.valid_rows and preview_limit > 0:
        keys: List[str] = []
        for record in outcome.valid_rows:
            for key in record.fields:
                if key not in keys:
                    keys.append(key)
        preview = outcome.valid_rows[:preview_limit]
        console.print(f"Valid rows (first {len(preview)} of {valid_count})")
        console.print(_preview_table(preview, keys))

    notes = [
        (record.row_index, issue)
        for record in outcome.valid_rows + outcome.invalid_rows
        for issue in record.issues
    ]
    if notes:
        console.print(f"  notes: {len(notes)}")
        for row_index, issue in notes[:preview_limit]:
            console.print(f"    row {row_index}: {issue}")


def print_commit(outcome: CommitOutcome, console: Optional[Console] = None) -> None:
    """Print the commit result; failures are always reported next to successes."""
    console = console or Console()
    if outcome.failure_count == 0:
        console.print(
            f"[green]✓[/green] Successfully imported {outcome.success_count} records"
        )
    else:
        console.print(
            f"[yellow]⚠[/yellow] Imported {outcome.success_count} records, "
            f"{outcome.failure_count} failed"
        )

    if outcome.failed_rows:
        table = Table(title="Failed rows")
        table.add_column("row", style="dim")
        table.add_column("error", style="red")
        for failed in outcome.failed_rows:
            row = "" if failed.row_index is None else str(failed.row_index)
            table.add_row(row, failed.error)
        console.print(table)


def print_error(message: str, console: Optional[Console] = None) -> None:
    console = console or Console(stderr=True)
    console.print(f"[red]✗[/red] {message}")
