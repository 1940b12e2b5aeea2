#!/usr/bin/env python3
"""
Row transformer for import-wizard.

Rewrites raw rows into canonical records keyed by system field names. When
the import target is known, every value is checked against its field type;
a value that fails the check is passed through unchanged with a note, since
the backend validator has the final word.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dateutil import parser as date_parser

from .mapping import ColumnMapping
from .parsers import RawRow
from .schema import FieldType, ImportField, ImportTarget

# Fallback row number for rows without a line number: +1 for the header, +1 for 1-based counting
ROW_INDEX_OFFSET = 2

# 1,234 and -1,234,567.89; any other comma is ambiguous
THOUSANDS_PATTERN = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")

# Two defaults that differ in every date part; a complete date ignores both
DATE_DEFAULTS = (datetime(1904, 1, 1), datetime(1905, 2, 2))


@dataclass(frozen=True)
class CanonicalRecord:
    """One row reshaped into system field keys."""

    row_index: int
    fields: Dict[str, Any]
    issues: Tuple[str, ...] = field(default=())


def _coerce_number(raw: str):
    text = raw.strip()
    if THOUSANDS_PATTERN.match(text):
        text = text.replace(",", "")
    elif "," in text:
        raise ValueError("ambiguous comma, use a dot for decimals")
    try:
        return int(text)
    except ValueError:
        pass
    number = float(text)
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"not a finite number: {raw}")
    return number


def _coerce_date(raw: str) -> str:
    text = raw.strip()
    first, second = (date_parser.parse(text, default=d) for d in DATE_DEFAULTS)
    if first.date() != second.date():
        raise ValueError("incomplete date, expected day, month and year")
    return first.date().isoformat()


def _coerce_enum(raw: str, options: Sequence[str]) -> str:
    text = raw.strip()
    for option in options:
        if option.lower() == text.lower():
            return option
    raise ValueError(f"expected one of {', '.join(options)}")


def coerce_value(import_field: ImportField, raw: str) -> Tuple[Any, Optional[str]]:
    """
    Convert a raw cell to the field's type.

    Returns:
        Tuple of (value, issue); issue is None when the value passed its check.
        Blank cells become None.
    """
    if raw is None or raw.strip() == "":
        return None, None

    try:
        if import_field.type == FieldType.NUMBER:
            return _coerce_number(raw), None
        if import_field.type == FieldType.DATE:
            return _coerce_date(raw), None
        if import_field.type == FieldType.ENUM:
            return _coerce_enum(raw, import_field.enum_options), None
    except (ValueError, OverflowError) as e:
        return raw, f"{import_field.label}: '{raw}' is not a valid {import_field.type.value} ({e})"

    return raw.strip(), None


def transform_row(
    row: RawRow,
    position: int,
    mapping: ColumnMapping,
    target: Optional[ImportTarget] = None,
) -> CanonicalRecord:
    values: Dict[str, Any] = {}
    issues: List[str] = []
    for field_key, header in mapping.items():
        raw = row.cells.get(header)
        import_field = target.get_field(field_key) if target is not None else None
        if import_field is None:
            values[field_key] = raw if raw else None
            continue
        value, issue = coerce_value(import_field, raw)
        values[field_key] = value
        if issue:
            issues.append(issue)
    row_index = row.line_number if row.line_number is not None else position + ROW_INDEX_OFFSET
    return CanonicalRecord(row_index=row_index, fields=values, issues=tuple(issues))


def transform(
    rows: Sequence[RawRow],
    mapping: ColumnMapping,
    target: Optional[ImportTarget] = None,
) -> List[CanonicalRecord]:
    """
    Transform raw rows into canonical records, preserving file order.

    Only mapped fields appear in a record. row_index is the row number the
    operator sees in the spreadsheet, taken from the row's line_number.
    """
    return [
        transform_row(row, position, mapping, target)
        for position, row in enumerate(rows)
    ]
