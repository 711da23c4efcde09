"""Tabular codec: CSV parsing, column schemas and cell coercion."""

from csf_tracker.codec.csv_io import Row, parse_csv, write_csv
from csf_tracker.codec.tabular import Column, TabularSchema
from csf_tracker.codec.observation import (
    ObservationCodec,
    build_observation_schema,
    is_quarterly,
    quarter_columns,
)

__all__ = [
    "Row",
    "parse_csv",
    "write_csv",
    "Column",
    "TabularSchema",
    "ObservationCodec",
    "build_observation_schema",
    "is_quarterly",
    "quarter_columns",
]
