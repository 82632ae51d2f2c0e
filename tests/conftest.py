"""Pytest fixtures for workerdata tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from openpyxl import Workbook

USERS_HEADER = "firstName,lastName,email,password,gender,status"


def make_user(i: int, status: str = "active") -> dict[str, str]:
    return {
        "firstName": f"User{i}",
        "lastName": f"Test{i}",
        "email": f"user{i}@test.com",
        "password": f"Pass{i:03d}!",
        "gender": "female" if i % 2 else "male",
        "status": status,
    }


@pytest.fixture
def users() -> list[dict[str, str]]:
    """Twenty user records, every third one inactive."""
    return [make_user(i, "inactive" if i % 3 == 2 else "active") for i in range(20)]


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write records (or raw text) to a CSV file and return its path."""

    def _write(
        rows: list[dict[str, str]] | str,
        name: str = "data.csv",
        delimiter: str = ",",
    ) -> Path:
        path = tmp_path / name
        if isinstance(rows, str):
            path.write_text(rows, encoding="utf-8")
            return path
        headers = list(rows[0])
        lines = [delimiter.join(headers)]
        lines += [delimiter.join(row[h] for h in headers) for row in rows]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def users_csv(write_csv: Callable[..., Path], users: list[dict[str, str]]) -> Path:
    return write_csv(users, name="users.csv")


@pytest.fixture
def write_xlsx(tmp_path: Path) -> Callable[..., Path]:
    """Write {sheet: rows} to a workbook and return its path."""

    def _write(sheets: dict[str, list[list[object]]], name: str = "data.xlsx") -> Path:
        wb = Workbook()
        wb.remove(wb.active)
        for sheet_name, rows in sheets.items():
            ws = wb.create_sheet(title=sheet_name)
            for row in rows:
                ws.append(row)
        path = tmp_path / name
        wb.save(path)
        return path

    return _write


@pytest.fixture
def users_xlsx(write_xlsx: Callable[..., Path], users: list[dict[str, str]]) -> Path:
    headers = list(users[0])
    rows: list[list[object]] = [headers] + [[u[h] for h in headers] for u in users[:5]]
    return write_xlsx(
        {
            "Users": rows,
            "Products": [["sku", "price", "stock"], ["A-1", 9.5, 3], ["B-2", 12, None]],
        },
        name="users.xlsx",
    )
