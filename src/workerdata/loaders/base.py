"""
Source detection and the tabular loading entry point.

Every reader in this package returns records as ``dict[str, str]`` keyed by
the header row, so datasets with arbitrary column sets flow through unchanged.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = structlog.get_logger(__name__)

Record = dict[str, str]


class DataSourceError(Exception):
    """Raised when a tabular data source cannot be read or parsed."""

    def __init__(self, source: str | Path, reason: str) -> None:
        self.source = str(source)
        self.reason = reason
        super().__init__(f"Failed to load data from {self.source}: {reason}")


class ColumnNotFoundError(DataSourceError):
    """Raised when a requested column is not part of the header row."""

    def __init__(self, source: str | Path, column: str, available: list[str]) -> None:
        self.column = column
        self.available = available
        super().__init__(
            source,
            f'Column "{column}" not found. Available columns: {", ".join(available)}',
        )


class SheetNotFoundError(DataSourceError):
    """Raised when a workbook has no sheet with the requested name."""

    def __init__(self, source: str | Path, sheet_name: str, available: list[str]) -> None:
        self.sheet_name = sheet_name
        self.available = available
        super().__init__(
            source,
            f'Sheet "{sheet_name}" not found. Available sheets: {", ".join(available)}',
        )


def check_delimiter(value: str | None) -> str | None:
    """Validate a column delimiter: None (detect) or a single character."""
    if value is not None and len(value) != 1:
        raise ValueError("delimiter must be a single character")
    return value


class SourceType(StrEnum):
    """Supported tabular source formats."""

    CSV = "csv"
    EXCEL = "excel"


EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm"})


class LoaderOptions(BaseModel):
    """Options understood by :func:`load_records`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    delimiter: str | None = Field(
        default=None,
        description="Column separator for delimited text (default: ',' or tab for .tsv)",
    )
    sheet_name: str | None = Field(
        default=None,
        description="Named sheet for spreadsheet sources (default: first sheet)",
    )
    source_type: SourceType | None = Field(
        default=None,
        description="Force a source type instead of detecting it from the extension",
    )
    encoding: str = "utf-8"
    has_headers: bool = True

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, v: str | None) -> str | None:
        return check_delimiter(v)


def detect_source_type(path: str | Path) -> SourceType:
    """Guess the source type from the file extension."""
    if Path(path).suffix.lower() in EXCEL_SUFFIXES:
        return SourceType.EXCEL
    return SourceType.CSV


def default_delimiter(path: str | Path) -> str:
    return "\t" if Path(path).suffix.lower() == ".tsv" else ","


def load_records(path: str | Path, options: LoaderOptions | None = None) -> list[Record]:
    """
    Load every row of a CSV/TSV/Excel file as a list of records.

    Args:
        path: Path to the data file
        options: Loader options (delimiter, sheet name, forced source type)

    Returns:
        List of records keyed by header

    Raises:
        DataSourceError: If the file is missing, undecodable or malformed,
            or a named sheet does not exist
    """
    from workerdata.loaders.csv_reader import read_csv
    from workerdata.loaders.excel_reader import read_excel

    options = options or LoaderOptions()
    source_type = options.source_type or detect_source_type(path)

    if source_type == SourceType.EXCEL:
        return read_excel(path, options.sheet_name)

    return read_csv(
        path,
        delimiter=options.delimiter or default_delimiter(path),
        has_headers=options.has_headers,
        encoding=options.encoding,
    )


def match_criteria(record: dict[str, Any], criteria: dict[str, str]) -> bool:
    """Return True when every criteria entry equals the record's field."""
    return all(
        key in record and record[key] == value for key, value in criteria.items()
    )
