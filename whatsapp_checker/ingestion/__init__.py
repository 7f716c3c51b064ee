"""Reading input spreadsheets and writing augmented result tables."""

from .exporters import (
    RECONCILIATION_SHEET,
    RESULTS_SHEET,
    output_path_for,
    report_path_for,
    results_to_dataframe,
    write_output_table,
)
from .loaders import MissingColumnError, SpreadsheetSource, UnsupportedFileTypeError, load_rows

__all__ = [
    "MissingColumnError",
    "SpreadsheetSource",
    "UnsupportedFileTypeError",
    "load_rows",
    "output_path_for",
    "report_path_for",
    "results_to_dataframe",
    "write_output_table",
    "RESULTS_SHEET",
    "RECONCILIATION_SHEET",
]
