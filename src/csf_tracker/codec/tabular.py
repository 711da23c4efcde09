"""
Declarative column schemas.

A ``TabularSchema`` maps human-facing CSV headers onto paths in nested
record dicts, and knows how to encode and decode each cell. Exports and
imports of every store are written in terms of a schema.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from csf_tracker.codec.coercers import text_in, text_out
from csf_tracker.codec.csv_io import Row

Encoder = Callable[[Any], str]
Decoder = Callable[[str], Any]

_MISSING = object()


@dataclass(frozen=True)
class Column:
    """One CSV column bound to a path inside a record."""

    header: str
    path: tuple[str, ...]
    encode: Encoder = text_out
    decode: Decoder = text_in
    required: bool = False
    aliases: tuple[str, ...] = field(default_factory=tuple)

    def headers(self) -> tuple[str, ...]:
        return (self.header,) + self.aliases


def get_path(record: dict, path: tuple[str, ...]) -> Any:
    value: Any = record
    for part in path:
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def set_path(record: dict, path: tuple[str, ...], value: Any) -> None:
    target = record
    for part in path[:-1]:
        target = target.setdefault(part, {})
    target[path[-1]] = value


class TabularSchema:
    """Ordered set of columns with flatten and unflatten operations."""

    def __init__(self, columns: Iterable[Column]):
        self.columns = list(columns)

    @property
    def headers(self) -> list[str]:
        return [column.header for column in self.columns]

    def column(self, header: str) -> Optional[Column]:
        for column in self.columns:
            if header in column.headers():
                return column
        return None

    def cell(self, row: Row, column: Column) -> Any:
        """Raw cell for ``column``, trying aliases. Missing columns give _MISSING."""
        for header in column.headers():
            if header in row:
                return row[header]
        return _MISSING

    def flatten(self, record: dict) -> Row:
        """Encode a nested record into a header-keyed row."""
        return {column.header: column.encode(get_path(record, column.path)) for column in self.columns}

    def unflatten(self, row: Row) -> dict:
        """Decode a row into a nested record.

        Columns absent from the row are left out, so model defaults apply.
        """
        record: dict = {}
        for column in self.columns:
            cell = self.cell(row, column)
            if cell is _MISSING:
                continue
            set_path(record, column.path, column.decode(cell))
        return record

    def missing_required(self, row: Row) -> list[str]:
        missing = []
        for column in self.columns:
            if not column.required:
                continue
            cell = self.cell(row, column)
            if cell is _MISSING or not str(cell).strip():
                missing.append(column.header)
        return missing

    def matches(self, headers: Iterable[str]) -> bool:
        """True if every required column is present in ``headers``."""
        present = set(headers)
        return all(
            any(header in present for header in column.headers())
            for column in self.columns
            if column.required
        )
