"""CSV parsing and template generation for bulk imports using pandas."""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass, field
from io import StringIO

import pandas as pd

# Data row i (blank lines not counted) is reported as row i + 2; row 1 is the header
HEADER_OFFSET = 2

_LINE_PATTERN = re.compile(r"line (\d+)")
_ROW_PATTERN = re.compile(r"row (\d+)")


@dataclass
class CsvParseResult:
    """Headers, rows and syntax errors of one parsed CSV file."""

    headers: list[str]
    rows: list[dict[str, str]]
    errors: list[str] = field(default_factory=list)


def _describe_parser_error(exc: Exception) -> str:
    """Turn a pandas tokenizer error into a row-numbered message."""
    detail = str(exc).strip().split("C error: ", 1)[-1]
    match = _LINE_PATTERN.search(detail)
    if match:
        row = int(match.group(1))
    else:
        match = _ROW_PATTERN.search(detail)
        row = int(match.group(1)) + 1 if match else 0
    return f"Row {row}: {detail}"


def _record_widths(text: str) -> list[int]:
    """Field count of every record, with blank and whitespace-only lines as 0."""
    return [
        len(fields) if len(fields) > 1 or any(f.strip() for f in fields) else 0
        for fields in csv.reader(StringIO(text, newline=""))
    ]


def _cell(value) -> str:
    return "" if pd.isna(value) else str(value).strip()


def parse_csv(file_content: bytes) -> CsvParseResult:
    """
    Parse a CSV file into header-keyed rows.

    Blank lines are skipped and every header and value is trimmed.
    Malformed syntax and rows whose field count differs from the header
    are reported in ``errors`` instead of raising.

    Args:
        file_content: Raw file bytes (UTF-8, optional BOM)

    Returns:
        CsvParseResult with headers, rows and any syntax errors
    """
    # Cells are trimmed, so outer whitespace and blank lines carry nothing
    text = file_content.decode("utf-8-sig", errors="replace").strip()
    if not text:
        return CsvParseResult(headers=[], rows=[])
    text += "\n"

    try:
        # Blank lines are kept so pandas rows line up with _record_widths
        df = pd.read_csv(
            StringIO(text),
            header=None,
            dtype=str,
            na_values=[],
            keep_default_na=False,
            skip_blank_lines=False,
        )
        widths = _record_widths(text)
    except pd.errors.EmptyDataError:
        return CsvParseResult(headers=[], rows=[])
    except pd.errors.ParserError as exc:
        return CsvParseResult(headers=[], rows=[], errors=[_describe_parser_error(exc)])
    except csv.Error as exc:
        return CsvParseResult(headers=[], rows=[], errors=[f"Row 0: {exc}"])

    records = df.values.tolist()
    if len(widths) != len(records):
        return CsvParseResult(
            headers=[], rows=[], errors=["Row 0: Could not split the file into records"]
        )
    records = [(values, width) for values, width in zip(records, widths) if width]
    if not records:
        return CsvParseResult(headers=[], rows=[])

    header_values, header_width = records[0]
    headers = [_cell(h) for h in header_values[:header_width]]
    # Trailing commas on the header line do not add columns
    while headers and headers[-1] == "":
        headers.pop()

    errors: list[str] = []
    seen: set[str] = set()
    for header in headers:
        if header in seen:
            errors.append(f"Row 1: Duplicate column: {header}")
        seen.add(header)

    rows: list[dict[str, str]] = []
    for index, (values, width) in enumerate(records[1:]):
        row_number = index + HEADER_OFFSET
        if width < len(headers):
            errors.append(f"Row {row_number}: Too few fields: expected {len(headers)}")
            continue
        if any(_cell(value) for value in values[len(headers):width]):
            errors.append(f"Row {row_number}: Too many fields: expected {len(headers)}")
            continue
        rows.append({header: _cell(value) for header, value in zip(headers, values)})

    return CsvParseResult(headers=headers, rows=rows, errors=errors)


def generate_template(headers: list[str], examples: list[list[str]]) -> bytes:
    """
    Render a CSV template: the header line followed by example rows.

    Args:
        headers: Column names in order
        examples: Example rows, each aligned with ``headers``

    Returns:
        UTF-8 encoded CSV with standard quoting
    """
    df = pd.DataFrame(examples, columns=headers)
    return df.to_csv(index=False, lineterminator="\n").encode("utf-8")
