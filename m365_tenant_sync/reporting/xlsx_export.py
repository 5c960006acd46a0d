"""
XLSX exporter — writes outcome and export sheets with every cell stored as text.
"""

from __future__ import annotations

from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from ..sync.models import BatchReport
from ..tabular import Table
from .formatting import outcome_headers, outcome_rows, protect_cell

TEXT_FORMAT = "@"
MAX_COLUMN_WIDTH = 60


def _write_sheet(path: Path, title: str, headers: list[str], rows: list[list[str]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    ws = wb.active
    ws.title = title

    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.number_format = TEXT_FORMAT
    for row in rows:
        ws.append(row)
        for cell in ws[ws.max_row]:
            cell.number_format = TEXT_FORMAT
            cell.data_type = "s"

    for idx, header in enumerate(headers, start=1):
        longest = max([len(header)] + [len(r[idx - 1]) for r in rows if idx - 1 < len(r)])
        ws.column_dimensions[get_column_letter(idx)].width = min(longest + 2, MAX_COLUMN_WIDTH)
    ws.freeze_panes = "A2"

    wb.save(str(path))
    return path


def export_outcomes_xlsx(report: BatchReport, path: Path) -> Path:
    """Write one sheet row per input row: input columns + ObjectId + Comment."""
    return _write_sheet(path, "Results", outcome_headers(report), outcome_rows(report))


def export_table_xlsx(table: Table, path: Path, title: str = "Export") -> Path:
    rows = [[protect_cell(r.get(h, "")) for h in table.headers] for r in table.rows]
    return _write_sheet(path, title, list(table.headers), rows)
