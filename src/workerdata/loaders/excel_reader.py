"""
Excel reader for data-driven tests.

Reads ``.xlsx`` workbooks with openpyxl. The first row of a sheet is the
header row; cell values are converted to strings so Excel and CSV sources
produce identical records.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from workerdata.loaders.base import (
    ColumnNotFoundError,
    DataSourceError,
    Record,
    SheetNotFoundError,
    match_criteria,
)

logger = structlog.get_logger(__name__)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _open_workbook(path: str | Path) -> Any:
    file_path = Path(path).resolve()
    if not file_path.is_file():
        raise DataSourceError(file_path, "File not found")
    try:
        return load_workbook(file_path, read_only=True, data_only=True)
    # XML parse errors from ElementTree and lxml both derive from SyntaxError.
    except (InvalidFileException, BadZipFile, KeyError, ValueError, SyntaxError, OSError) as e:
        raise DataSourceError(file_path, f"Cannot open workbook: {e}") from e


def _sheet_name(wb: Any, path: str | Path, sheet_name: str | None) -> str:
    sheet = sheet_name or wb.sheetnames[0]
    if sheet not in wb.sheetnames:
        raise SheetNotFoundError(path, sheet, list(wb.sheetnames))
    return sheet


def _header_names(cells: list[str]) -> list[str]:
    return [c or f"col_{i}" for i, c in enumerate(cells)]


def get_all_sheets(path: str | Path) -> list[str]:
    """Return the sheet names of a workbook in order."""
    wb = _open_workbook(path)
    try:
        return list(wb.sheetnames)
    finally:
        wb.close()


def read_excel(path: str | Path, sheet_name: str | None = None) -> list[Record]:
    """
    Read all rows of a sheet.

    Args:
        path: Path to the workbook
        sheet_name: Sheet to read (default: first sheet)

    Returns:
        List of records keyed by the header row

    Raises:
        SheetNotFoundError: If ``sheet_name`` is not in the workbook
        DataSourceError: If the workbook cannot be opened
    """
    wb = _open_workbook(path)
    try:
        sheet = _sheet_name(wb, path, sheet_name)

        headers: list[str] = []
        records: list[Record] = []
        for row_idx, row in enumerate(wb[sheet].iter_rows(values_only=True)):
            cells = [_cell_text(v) for v in row]
            if row_idx == 0:
                headers = _header_names(cells)
                continue
            if not any(cells):
                continue
            cells += [""] * (len(headers) - len(cells))
            records.append(dict(zip(headers, cells)))
    finally:
        wb.close()

    logger.debug("Read Excel sheet", path=str(path), sheet=sheet, rows=len(records))
    return records


def read_excel_row(path: str | Path, sheet_name: str | None, row_number: int) -> Record | None:
    """Read a single row by its 1-based position, None if absent."""
    data = read_excel(path, sheet_name)
    if row_number < 1 or row_number > len(data):
        logger.warning(
            "Row not found", path=str(path), sheet=sheet_name, row=row_number,
            available=len(data),
        )
        return None
    return data[row_number - 1]


def read_excel_column(path: str | Path, sheet_name: str | None, column: str) -> list[str]:
    data = read_excel(path, sheet_name)
    if data and column not in data[0]:
        raise ColumnNotFoundError(path, column, list(data[0]))
    return [row[column] for row in data]


def find_rows(path: str | Path, sheet_name: str | None, criteria: dict[str, str]) -> list[Record]:
    return [row for row in read_excel(path, sheet_name) if match_criteria(row, criteria)]


def get_row_count(path: str | Path, sheet_name: str | None = None) -> int:
    return len(read_excel(path, sheet_name))


def get_headers(path: str | Path, sheet_name: str | None = None) -> list[str]:
    """Return the header row of a sheet, empty if the sheet is empty."""
    wb = _open_workbook(path)
    try:
        sheet = _sheet_name(wb, path, sheet_name)
        for row in wb[sheet].iter_rows(max_row=1, values_only=True):
            cells = [_cell_text(v) for v in row]
            return _header_names(cells) if any(cells) else []
        return []
    finally:
        wb.close()
