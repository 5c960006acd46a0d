"""
Spreadsheet input — reads .xlsx/.xlsm (openpyxl, first sheet) and .csv files
into a header list plus one {header: text} dict per data row.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

logger = logging.getLogger("m365_tenant_sync.tabular")

EXCEL_SUFFIXES = (".xlsx", ".xlsm")


class InputFileNotFound(FileNotFoundError):
    """The input sheet does not exist. Fatal: nothing has been processed yet."""
    pass


@dataclass
class Table:
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def cell_text(value: Any) -> str:
    """Render a cell as the text a user would type into it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_table(path: str | Path) -> Table:
    """Read a sheet by extension; anything that is not Excel is read as CSV."""
    p = Path(path)
    if not p.is_file():
        raise InputFileNotFound(f"Input file not found: {p}")
    if p.suffix.lower() in EXCEL_SUFFIXES:
        table = _read_xlsx(p)
    else:
        table = _read_csv(p)
    logger.info(f"Read {len(table)} rows, {len(table.headers)} columns from {p.name}")
    return table


def _read_xlsx(path: Path) -> Table:
    wb = load_workbook(filename=str(path), data_only=True, read_only=True)
    try:
        ws = wb.worksheets[0]
        rows = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()
    if not rows:
        return Table()

    headers = _unique_headers(cell_text(h) for h in rows[0])
    table = Table(headers=[h for h in headers if h])
    for raw in rows[1:]:
        values = [cell_text(v) for v in raw]
        if not any(values):
            continue
        table.rows.append({
            h: (values[i] if i < len(values) else "")
            for i, h in enumerate(headers)
            if h
        })
    return table


def _read_csv(path: Path) -> Table:
    with open(path, "r", newline="", encoding="utf-8-sig") as fh:
        reader = csv.reader(fh)
        try:
            first = next(reader)
        except StopIteration:
            return Table()
        headers = _unique_headers(h.strip() for h in first)
        table = Table(headers=[h for h in headers if h])
        for raw in reader:
            if not any(cell.strip() for cell in raw):
                continue
            table.rows.append({
                h: (raw[i].strip() if i < len(raw) else "")
                for i, h in enumerate(headers)
                if h
            })
    return table


def _unique_headers(headers) -> list[str]:
    """Suffix duplicate header names so no column silently overwrites another."""
    seen: dict[str, int] = {}
    result = []
    for h in headers:
        if not h:
            result.append("")
            continue
        count = seen.get(h, 0)
        seen[h] = count + 1
        result.append(h if count == 0 else f"{h}_{count + 1}")
    return result
