"""Export utilities for verification results."""
from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Iterable, List, MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..models import OutputRow

PathLike = Union[str, Path]

RESULT_COLUMNS = ("on_whatsapp", "is_valid")
RECONCILIATION_COLUMNS = RESULT_COLUMNS + ("is_not_found",)
RESULTS_SHEET = "WhatsApp Status"
RECONCILIATION_SHEET = "Complete Results"

_TABLE_SUFFIX = re.compile(r"\.(csv|xlsx)$", re.IGNORECASE)


def output_path_for(requested: PathLike) -> Path:
    """Return the workbook path for a requested output name (always ``.xlsx``)."""

    path = Path(requested)
    return path.with_name(_TABLE_SUFFIX.sub("", path.name) + ".xlsx")


def report_path_for(requested: PathLike, *, on: Optional[date] = None) -> Path:
    """Return the date-stamped reconciliation report path for ``requested``."""

    path = Path(requested)
    stamp = (on or date.today()).isoformat()
    return path.with_name(f"{_TABLE_SUFFIX.sub('', path.name)}-with-missing-{stamp}.xlsx")


def results_to_dataframe(
    rows: Sequence[OutputRow],
    *,
    input_columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Convert output rows into a :class:`pandas.DataFrame`.

    Input columns keep their original order and the result columns follow.
    """

    records = [row.as_row() for row in rows]
    columns = _ordered_columns(records, input_columns)
    return pd.DataFrame(records, columns=columns)


def write_output_table(
    rows: Sequence[OutputRow],
    path: PathLike,
    *,
    input_columns: Optional[Sequence[str]] = None,
    sheet_name: str = RESULTS_SHEET,
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write ``rows`` to a CSV or Excel file and return its path."""

    dataframe = results_to_dataframe(rows, input_columns=input_columns)
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_dataframe(dataframe, output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def _ordered_columns(records: Iterable[MutableMapping[str, object]], input_columns: Optional[Sequence[str]]) -> List[str]:
    ordered: List[str] = list(input_columns or [])
    result_columns: List[str] = []
    for record in records:
        for key in record:
            if key in RECONCILIATION_COLUMNS:
                if key not in result_columns:
                    result_columns.append(key)
            elif key not in ordered:
                ordered.append(key)
    if not result_columns:
        result_columns = list(RESULT_COLUMNS)
    return ordered + [column for column in RECONCILIATION_COLUMNS if column in result_columns]


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in {".xlsx", ".xlsm"}:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return

    raise ValueError(f"Unsupported export file extension: {suffix}")


__all__ = [
    "output_path_for",
    "report_path_for",
    "results_to_dataframe",
    "write_output_table",
    "RESULTS_SHEET",
    "RECONCILIATION_SHEET",
]
