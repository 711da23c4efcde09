"""
CSV text to header-keyed rows and back.

Parsing is header-driven, trims header and cell whitespace, skips blank
lines and tolerates a UTF-8 byte order mark. Malformed quoting raises
``CSVParseError`` before any row is handed to a caller.
"""

import csv
import io
from typing import Iterable

from csf_tracker.core.errors import CSVParseError

Row = dict[str, str]


def parse_csv(text: str) -> tuple[list[str], list[Row]]:
    """Parse CSV text into its headers and a list of rows.

    Returns:
        A ``(headers, rows)`` tuple. Each row maps every header to a string;
        cells missing from a short row are empty strings.

    Raises:
        CSVParseError: If the text is not well-formed CSV.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.reader(io.StringIO(text), strict=True)
    try:
        records = list(reader)
    except csv.Error as e:
        raise CSVParseError(
            f"Malformed CSV near line {reader.line_num}: {e}",
            line_number=reader.line_num,
        ) from e

    records = [record for record in records if any(cell.strip() for cell in record)]
    if not records:
        return [], []

    headers = [header.strip() for header in records[0]]
    rows = []
    for record in records[1:]:
        cells = [cell.strip() for cell in record]
        cells += [""] * (len(headers) - len(cells))
        rows.append({header: cells[i] for i, header in enumerate(headers) if header})
    return [header for header in headers if header], rows


def write_csv(headers: list[str], rows: Iterable[Row]) -> str:
    """Render rows as CSV text with a header line, quoting where needed."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({header: row.get(header, "") for header in headers})
    return buffer.getvalue()
