"""
CSV reader for data-driven tests.

Reads delimited text files into records keyed by the header row. Empty lines
are skipped, cells are trimmed and rows with an inconsistent number of cells
are padded or truncated to the header width.
"""

from __future__ import annotations

import csv
from pathlib import Path

import structlog

from workerdata.loaders.base import (
    ColumnNotFoundError,
    DataSourceError,
    Record,
    match_criteria,
)

logger = structlog.get_logger(__name__)


def _read_rows(path: str | Path, delimiter: str, encoding: str) -> list[list[str]]:
    """Read raw, trimmed, non-empty rows from a delimited file."""
    file_path = Path(path).resolve()
    if not file_path.is_file():
        raise DataSourceError(file_path, "File not found")

    try:
        with file_path.open(newline="", encoding=encoding) as f:
            reader = csv.reader(f, delimiter=delimiter, strict=True)
            rows = [[cell.strip() for cell in row] for row in reader]
    except UnicodeDecodeError as e:
        raise DataSourceError(file_path, f"Cannot decode file as {encoding}: {e}") from e
    except LookupError as e:
        raise DataSourceError(file_path, f"Unknown encoding: {encoding}") from e
    except csv.Error as e:
        raise DataSourceError(file_path, f"Malformed CSV: {e}") from e
    except OSError as e:
        raise DataSourceError(file_path, str(e)) from e

    return [row for row in rows if any(row)]


def read_csv(
    path: str | Path,
    delimiter: str = ",",
    has_headers: bool = True,
    encoding: str = "utf-8",
) -> list[Record]:
    """
    Read all rows of a CSV file.

    Args:
        path: Path to the CSV file
        delimiter: Column delimiter (use "\\t" for TSV, ";" for European CSVs)
        has_headers: Whether the first row holds the column names. Without
            headers the columns are keyed ``col_0``, ``col_1``, ...
        encoding: File encoding

    Returns:
        List of records

    Raises:
        DataSourceError: If the file is missing or cannot be parsed
    """
    rows = _read_rows(path, delimiter, encoding)
    if not rows:
        logger.info("CSV file has no rows", path=str(path))
        return []

    if has_headers:
        headers, body = rows[0], rows[1:]
    else:
        width = max(len(row) for row in rows)
        headers, body = [f"col_{i}" for i in range(width)], rows

    records = []
    for row in body:
        padded = row + [""] * (len(headers) - len(row))
        records.append(dict(zip(headers, padded)))

    logger.debug("Read CSV file", path=str(path), rows=len(records))
    return records


def read_csv_row(path: str | Path, row_number: int, delimiter: str = ",") -> Record | None:
    """
    Read a single row by its 1-based position.

    Returns None when the file has fewer rows.
    """
    data = read_csv(path, delimiter=delimiter)
    if row_number < 1 or row_number > len(data):
        logger.warning(
            "Row not found", path=str(path), row=row_number, available=len(data)
        )
        return None
    return data[row_number - 1]


def read_csv_column(path: str | Path, column: str, delimiter: str = ",") -> list[str]:
    """
    Read every value of one column.

    Raises:
        ColumnNotFoundError: If the column is not in the header row
    """
    data = read_csv(path, delimiter=delimiter)
    if data and column not in data[0]:
        raise ColumnNotFoundError(path, column, list(data[0]))
    return [row[column] for row in data]


def find_rows(path: str | Path, criteria: dict[str, str], delimiter: str = ",") -> list[Record]:
    """Return rows whose fields equal every criteria entry."""
    matches = [row for row in read_csv(path, delimiter=delimiter) if match_criteria(row, criteria)]
    logger.debug("Found matching rows", path=str(path), matches=len(matches))
    return matches


def get_row_count(path: str | Path, delimiter: str = ",") -> int:
    return len(read_csv(path, delimiter=delimiter))


def get_headers(path: str | Path, delimiter: str = ",", encoding: str = "utf-8") -> list[str]:
    """Return the header row, or an empty list for an empty file."""
    rows = _read_rows(path, delimiter, encoding)
    return rows[0] if rows else []


def read_csv_raw(path: str | Path, delimiter: str = ",", encoding: str = "utf-8") -> list[list[str]]:
    """Read rows as lists of cells, header row included."""
    return _read_rows(path, delimiter, encoding)


def get_unique_values(path: str | Path, column: str, delimiter: str = ",") -> list[str]:
    """Distinct values of a column in first-seen order."""
    return list(dict.fromkeys(read_csv_column(path, column, delimiter=delimiter)))
