#!/usr/bin/env python3
"""
Spreadsheet ingestion for import-wizard.

Turns an uploaded file into a header row and an ordered list of raw rows:
- Delimited text (CSV/TSV)
- XLSX workbooks (first non-empty worksheet unless a sheet is named)

Every cell is read as text; type checks happen later in the transformer.
"""

import asyncio
import csv
import io
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

import pandas as pd

from .errors import EmptyFileError, ParseError
from .logging_config import get_logger

logger = get_logger(__name__)

# File extension -> reader format
SUPPORTED_EXTENSIONS = {
    ".csv": "csv",
    ".txt": "csv",
    ".tsv": "tsv",
    ".xlsx": "xlsx",
    ".xlsm": "xlsx",
}
SUPPORTED_FORMATS = ("csv", "tsv", "xlsx")


@dataclass(frozen=True)
class RawRow:
    """One data row as read from the file: header -> raw cell text."""

    row_index: int  # 1-based, header excluded
    cells: Mapping[str, str]
    line_number: Optional[int] = None  # spreadsheet row, header and blank rows counted


@dataclass(frozen=True)
class ParsedSheet:
    """Headers and rows of an ingested file, in file order."""

    headers: List[str]
    rows: List[RawRow]
    file_format: str
    sheet_name: Optional[str] = None


def detect_format(file_name: str) -> str:
    """Infer the reader format from a file name."""
    suffix = Path(file_name).suffix.lower()
    try:
        return SUPPORTED_EXTENSIONS[suffix]
    except KeyError:
        raise ParseError(
            f"Unsupported file format '{suffix or file_name}'. "
            f"Supported formats: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        ) from None


def _is_nonempty_row(row: List[str]) -> bool:
    return any(cell.strip() != "" for cell in row)


def find_first_non_empty_worksheet(workbook: pd.ExcelFile) -> str:
    """Find the first worksheet that has at least one non-empty cell."""
    for sheet_name in workbook.sheet_names:
        df = workbook.parse(sheet_name, header=None, dtype=str)
        if df.empty:
            continue
        values = df.fillna("").astype(str).values.tolist()
        if any(_is_nonempty_row(row) for row in values):
            return sheet_name
    raise EmptyFileError("File is empty or missing headers")


def _widest_record(text: str, sep: str) -> int:
    return max((len(record) for record in csv.reader(io.StringIO(text), delimiter=sep)), default=0)


def read_delimited(data: bytes, sep: str) -> pd.DataFrame:
    """
    Read delimited text into a header-less, all-text DataFrame.

    Blank lines are kept as empty rows so frame positions match spreadsheet
    rows. The frame is as wide as the widest record, so rows with more cells
    than the header do not abort the read.
    """
    if len(sep) != 1:
        raise ParseError(f"Delimiter must be a single character, got '{sep}'")
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"Failed to parse file. Please save it as UTF-8. ({e})") from e

    try:
        width = _widest_record(text, sep)
        if width == 0:
            raise EmptyFileError("File is empty or missing headers")
        return pd.read_csv(
            io.StringIO(text),
            sep=sep,
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except EmptyFileError:
        raise
    except pd.errors.EmptyDataError:
        raise EmptyFileError("File is empty or missing headers") from None
    except Exception as e:
        raise ParseError(f"Failed to parse file. Please verify format. ({e})") from e


def read_frame(
    data: bytes,
    file_format: str,
    sheet: Optional[str] = None,
    delimiter: Optional[str] = None,
) -> Tuple[pd.DataFrame, Optional[str]]:
    """
    Read an upload into a header-less, all-text DataFrame.

    Args:
        data: File content
        file_format: One of SUPPORTED_FORMATS
        sheet: Worksheet name for workbooks (default: first non-empty)
        delimiter: Override the delimiter for delimited text

    Returns:
        Tuple of (frame, sheet_name)
    """
    if file_format not in SUPPORTED_FORMATS:
        raise ParseError(f"Unsupported file format: {file_format}")
    if not data:
        raise EmptyFileError("File is empty or missing headers")

    if file_format in ("csv", "tsv"):
        sep = delimiter or ("\t" if file_format == "tsv" else ",")
        return read_delimited(data, sep), None

    try:
        with pd.ExcelFile(io.BytesIO(data), engine="openpyxl") as workbook:
            if sheet is None:
                sheet_name = find_first_non_empty_worksheet(workbook)
            elif sheet not in workbook.sheet_names:
                raise ParseError(
                    f"Worksheet '{sheet}' not found. Available: {workbook.sheet_names}"
                )
            else:
                sheet_name = sheet
            df = workbook.parse(sheet_name, header=None, dtype=str)
    except (EmptyFileError, ParseError):
        raise
    except Exception as e:
        raise ParseError(f"Failed to parse file. Please verify format. ({e})") from e
    return df, sheet_name


def frame_to_rows(df: pd.DataFrame) -> Tuple[List[str], List[RawRow]]:
    """
    Split a header-less frame into headers and raw rows.

    The first non-empty row is the header row. Fully blank rows are skipped
    but still counted: line_number is the 1-based frame position, which is
    the row number a spreadsheet program shows. For duplicate headers the first
    column's value is kept in the row cells.
    """
    values = df.fillna("").astype(str).values.tolist()
    non_empty = [
        (position + 1, row) for position, row in enumerate(values) if _is_nonempty_row(row)
    ]
    if len(non_empty) < 2:
        raise EmptyFileError("File is empty or missing headers")

    _, header_row = non_empty[0]
    # Header width ends at the last non-empty header cell
    width = max(i for i, cell in enumerate(header_row) if cell.strip() != "") + 1
    headers = header_row[:width]

    rows: List[RawRow] = []
    for position, (line_number, row) in enumerate(non_empty[1:]):
        if any(cell.strip() != "" for cell in row[width:]):
            logger.warning(
                f"Row {line_number} has values beyond the last header column; they are ignored"
            )
        cells: Dict[str, str] = {}
        for col, header in enumerate(headers):
            if header in cells:
                continue
            cells[header] = row[col] if col < len(row) else ""
        rows.append(
            RawRow(
                row_index=position + 1,
                cells=MappingProxyType(cells),
                line_number=line_number,
            )
        )

    return headers, rows


def parse_upload(
    data: bytes,
    file_format: str,
    sheet: Optional[str] = None,
    delimiter: Optional[str] = None,
) -> ParsedSheet:
    """
    Parse an uploaded file into headers and rows.

    Raises:
        EmptyFileError: If there is no header row or no data row
        ParseError: If the file is corrupt or the format unsupported
    """
    df, sheet_name = read_frame(data, file_format, sheet=sheet, delimiter=delimiter)
    headers, rows = frame_to_rows(df)

    duplicates = sorted({h for h in headers if headers.count(h) > 1})
    if duplicates:
        logger.warning(
            f"Duplicate headers {duplicates}: the first occurrence is used for mapping"
        )
    logger.info(
        f"Parsed {len(rows)} rows with {len(headers)} columns"
        + (f" from sheet '{sheet_name}'" if sheet_name else "")
    )
    return ParsedSheet(
        headers=headers, rows=rows, file_format=file_format, sheet_name=sheet_name
    )


async def ingest(
    data: bytes,
    file_format: str,
    sheet: Optional[str] = None,
    delimiter: Optional[str] = None,
) -> ParsedSheet:
    """Parse an upload off the event loop."""
    return await asyncio.to_thread(
        parse_upload, data, file_format, sheet=sheet, delimiter=delimiter
    )


def load_upload(path: Path) -> Tuple[bytes, str]:
    """Read a local file and detect its format."""
    file_format = detect_format(path.name)
    try:
        return path.read_bytes(), file_format
    except FileNotFoundError:
        raise ParseError(f"File not found: {path}") from None
    except OSError as e:
        raise ParseError(f"Could not read {path}: {e}") from e
