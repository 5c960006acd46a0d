"""Reporting package — result sheets, exports and run summaries."""

from .formatting import protect_cell, versioned_output_path
from .xlsx_export import export_outcomes_xlsx, export_table_xlsx
from .csv_export import export_outcomes_csv, export_table_csv
from .json_export import export_run_summary_json

__all__ = [
    "protect_cell",
    "versioned_output_path",
    "export_outcomes_xlsx",
    "export_table_xlsx",
    "export_outcomes_csv",
    "export_table_csv",
    "export_run_summary_json",
]
