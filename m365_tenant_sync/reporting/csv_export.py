"""
CSV exporter — the same outcome and export rows as the XLSX writer, as CSV.
"""

from __future__ import annotations

import csv
from pathlib import Path

from ..sync.models import BatchReport
from ..tabular import Table
from .formatting import outcome_headers, outcome_rows, protect_cell


def export_outcomes_csv(report: BatchReport, path: Path) -> Path:
    """
    Write outcomes to CSV.

    Returns:
        Path to the created CSV file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.writer(fh)
        writer.writerow(outcome_headers(report))
        writer.writerows(outcome_rows(report))
    return path


def export_table_csv(table: Table, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.DictWriter(fh, fieldnames=table.headers, extrasaction="ignore")
        writer.writeheader()
        for row in table.rows:
            writer.writerow({h: protect_cell(row.get(h, "")) for h in table.headers})
    return path
