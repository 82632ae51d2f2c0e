"""
Excel writer for test data and test result exports.

Writes formatted workbooks with openpyxl: a styled header row, thin cell
borders and column widths fitted to their content.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import structlog
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from workerdata.loaders.base import DataSourceError, SheetNotFoundError

logger = structlog.get_logger(__name__)

MAX_COLUMN_WIDTH = 50

HEADER_FILL = PatternFill(fill_type="solid", fgColor="FF4472C4")
RESULTS_HEADER_FILL = PatternFill(fill_type="solid", fgColor="FF2F5496")
HEADER_FONT = Font(bold=True, color="FFFFFFFF")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

STATUS_FILLS = {
    "PASSED": PatternFill(fill_type="solid", fgColor="FF70AD47"),
    "FAILED": PatternFill(fill_type="solid", fgColor="FFFF0000"),
    "SKIPPED": PatternFill(fill_type="solid", fgColor="FFFFC000"),
}


def _write_rows(
    ws: Worksheet,
    rows: list[dict[str, Any]],
    header_fill: PatternFill = HEADER_FILL,
) -> list[str]:
    """Write a header row plus data rows, return the headers."""
    headers = list(rows[0])
    ws.append(headers)
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = header_fill

    for row in rows:
        ws.append([row.get(h, "") for h in headers])

    return headers


def _finish_sheet(ws: Worksheet) -> None:
    """Apply borders and fit column widths."""
    for column in ws.iter_cols():
        width = max((len(str(c.value)) for c in column if c.value is not None), default=0)
        ws.column_dimensions[column[0].column_letter].width = min(width + 2, MAX_COLUMN_WIDTH)
        for cell in column:
            cell.border = THIN_BORDER


def _save(wb: Workbook, path: str | Path) -> Path:
    file_path = Path(path).resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(file_path)
    return file_path


def write_excel(path: str | Path, sheet_name: str, rows: list[dict[str, Any]]) -> Path | None:
    """
    Write rows to a new workbook with a single sheet.

    Headers are taken from the first row. Nothing is written for an empty
    row list.

    Returns:
        The written path, or None when there was nothing to write
    """
    if not rows:
        logger.warning("No data to write", path=str(path))
        return None

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    _write_rows(ws, rows)
    _finish_sheet(ws)

    written = _save(wb, path)
    logger.info("Wrote Excel file", path=str(written), sheet=sheet_name, rows=len(rows))
    return written


def append_to_excel(path: str | Path, sheet_name: str, rows: list[dict[str, Any]]) -> int:
    """
    Append rows under the existing header row of a sheet.

    Keys missing from a row are written as empty cells; keys that are not in
    the header are ignored.

    Returns:
        Number of appended rows

    Raises:
        SheetNotFoundError: If the sheet does not exist
        DataSourceError: If the workbook cannot be opened
    """
    file_path = Path(path).resolve()
    try:
        wb = load_workbook(file_path)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as e:
        raise DataSourceError(file_path, f"Cannot open workbook: {e}") from e

    if sheet_name not in wb.sheetnames:
        raise SheetNotFoundError(file_path, sheet_name, list(wb.sheetnames))

    if not rows:
        logger.warning("No data to append", path=str(file_path))
        return 0

    ws = wb[sheet_name]
    headers = [cell.value for cell in ws[1] if cell.value is not None]
    for row in rows:
        ws.append([row.get(h, "") for h in headers])

    wb.save(file_path)
    logger.info("Appended rows", path=str(file_path), sheet=sheet_name, rows=len(rows))
    return len(rows)


def create_workbook(path: str | Path, sheets: dict[str, list[dict[str, Any]]]) -> Path:
    """
    Write several sheets into one workbook.

    Sheets with no rows are created empty.
    """
    wb = Workbook()
    wb.remove(wb.active)

    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        if not rows:
            logger.warning("No data for sheet", sheet=name)
            continue
        _write_rows(ws, rows)
        _finish_sheet(ws)

    if not wb.sheetnames:
        wb.create_sheet(title="Sheet1")

    written = _save(wb, path)
    logger.info("Created workbook", path=str(written), sheets=len(sheets))
    return written


def write_test_results(path: str | Path, results: list[dict[str, Any]]) -> Path | None:
    """
    Export test results with colour-coded status cells.

    Each result is a flat mapping; a ``status`` key (PASSED, FAILED, SKIPPED,
    any case) selects the fill of its cell.
    """
    if not results:
        logger.warning("No test results to write", path=str(path))
        return None

    wb = Workbook()
    ws = wb.active
    ws.title = "Test Results"
    headers = _write_rows(ws, results, header_fill=RESULTS_HEADER_FILL)

    if "status" in headers:
        status_col = headers.index("status") + 1
        for row_idx, result in enumerate(results, start=2):
            fill = STATUS_FILLS.get(str(result.get("status", "")).upper())
            if fill is None:
                continue
            cell = ws.cell(row=row_idx, column=status_col)
            cell.fill = fill
            cell.font = HEADER_FONT

    _finish_sheet(ws)
    written = _save(wb, path)
    logger.info("Wrote test results", path=str(written), results=len(results))
    return written
