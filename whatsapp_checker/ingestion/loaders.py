"""Utilities for loading the rows to verify from spreadsheets."""
from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any, Iterator, List, Mapping, MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..models import PHONE_COLUMN, InputRow

PathLike = Union[str, Path]

CSV_SUFFIXES = {".csv", ".tsv"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm"}

_INTEGRAL_FLOAT_TEXT = re.compile(r"^(\+?\d+)\.0+$")


class UnsupportedFileTypeError(ValueError):
    """Raised when an unsupported file format is passed to the loader."""


class MissingColumnError(ValueError):
    """Raised when the spreadsheet has no phone column."""


class SpreadsheetSource:
    """Sequence of :class:`InputRow` objects read from a CSV or Excel file."""

    def __init__(self, columns: Sequence[str], rows: Sequence[InputRow], *, path: Optional[Path] = None) -> None:
        self.columns = list(columns)
        self.rows = list(rows)
        self.path = path

    @classmethod
    def from_file(
        cls,
        path: PathLike,
        *,
        sheet_name: Union[str, int] = 0,
        loader_kwargs: Optional[MutableMapping[str, Any]] = None,
    ) -> "SpreadsheetSource":
        """Read the first (or ``sheet_name``) sheet of ``path``.

        Cells are read without type inference, so CSV values stay strings and
        Excel values keep their cell types. Fully blank rows are dropped and
        empty cells become ``None``.
        """

        path_obj = Path(path)
        dataframe = _read_dataframe(path_obj, sheet_name=sheet_name, loader_kwargs=loader_kwargs)
        columns = [str(column) for column in dataframe.columns]
        if PHONE_COLUMN not in columns:
            raise MissingColumnError(f"Input file '{path_obj}' has no '{PHONE_COLUMN}' column")

        rows: List[InputRow] = []
        for record in dataframe.to_dict(orient="records"):
            values = {str(key): _clean_cell(value) for key, value in record.items()}
            if _row_is_empty(values):
                continue
            values[PHONE_COLUMN] = _clean_phone(values.get(PHONE_COLUMN))
            rows.append(InputRow(index=len(rows), values=values))
        return cls(columns, rows, path=path_obj)

    def __iter__(self) -> Iterator[InputRow]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)


def load_rows(path: PathLike, **kwargs: Any) -> List[InputRow]:
    """Load the rows of ``path`` as :class:`InputRow` objects."""

    return SpreadsheetSource.from_file(path, **kwargs).rows


def _read_dataframe(
    path: Path,
    *,
    sheet_name: Union[str, int] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> pd.DataFrame:
    loader_kwargs = dict(loader_kwargs or {})
    loader_kwargs.setdefault("dtype", object)
    suffix = path.suffix.lower()

    if not path.exists():
        raise FileNotFoundError(f"Input file [{path}] couldn't be found")

    if suffix in CSV_SUFFIXES:
        if suffix == ".tsv":
            loader_kwargs.setdefault("sep", "\t")
        return pd.read_csv(path, **loader_kwargs)

    if suffix in EXCEL_SUFFIXES:
        engine = loader_kwargs.pop("engine", None) or "openpyxl"
        return pd.read_excel(path, sheet_name=sheet_name, engine=engine, **loader_kwargs)

    raise UnsupportedFileTypeError(f"Unsupported file extension: {path.suffix}")


def _clean_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    return value


def _clean_phone(value: Any) -> Any:
    # Numeric phone columns containing blanks are saved as floats (5551112222.0).
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        match = _INTEGRAL_FLOAT_TEXT.match(text)
        if match:
            return match.group(1)
        return text or None
    return value


def _row_is_empty(values: Mapping[str, Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in values.values())


__all__ = ["SpreadsheetSource", "load_rows", "MissingColumnError", "UnsupportedFileTypeError"]
