#!/usr/bin/env python3
"""
CSV template generation for import-wizard.

A template has one column per target field, headed by the field label so that
auto-mapping resolves every column, and a single example row.
"""

from pathlib import Path
from typing import Dict, Union

import pandas as pd

from .logging_config import get_logger
from .schema import FieldType, ImportField, ImportTarget

logger = get_logger(__name__)


def example_value(import_field: ImportField) -> str:
    """Dummy value for one field in the template row."""
    if import_field.example:
        return import_field.example
    if import_field.key == "role":
        return "technician"
    if import_field.type == FieldType.DATE:
        return "2024-01-01"
    if import_field.type == FieldType.NUMBER:
        return "123"
    if import_field.type == FieldType.ENUM and import_field.enum_options:
        return import_field.enum_options[0]
    return "example"


def template_frame(target: ImportTarget) -> pd.DataFrame:
    row: Dict[str, str] = {f.label: example_value(f) for f in target.fields}
    return pd.DataFrame([row], columns=[f.label for f in target.fields])


def template_filename(target: ImportTarget) -> str:
    return f"{target.id}_template.csv"


def render_template(target: ImportTarget) -> str:
    """Return the CSV template for a target as text."""
    return template_frame(target).to_csv(index=False)


def write_template(target: ImportTarget, output_path: Union[str, Path]) -> Path:
    """Write the CSV template for a target and return the written path."""
    output_path = Path(output_path)
    if output_path.is_dir():
        output_path = output_path / template_filename(target)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    template_frame(target).to_csv(output_path, index=False, encoding="utf-8")
    logger.info(f"Wrote template for '{target.id}' to {output_path}")
    return output_path
