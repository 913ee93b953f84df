from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from ..models.row_data import RowData

"""Workbook reader.

Reads every worksheet header-less with pandas (openpyxl engine for .xlsx) and
then normalizes each sheet: the configured header row supplies column names,
rows below it become data rows, rows with no content at all are skipped.

Text such as "NA" or "None" is kept as-is (``keep_default_na=False``); only
truly blank cells become ``None``.
"""

__all__ = [
    "WorkbookReadError",
    "SheetHeaderError",
    "SheetData",
    "read_workbook",
    "normalize_sheet",
    "is_blank",
]


class WorkbookReadError(Exception):
    """Raised when the uploaded bytes cannot be opened as a workbook."""


class SheetHeaderError(Exception):
    """Raised when the header row is missing or has no usable column names."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[RowData]


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # list-like values are never blank cells
        return False


def read_workbook(source: Path | str | bytes | BinaryIO) -> dict[str, pd.DataFrame]:
    """Read a workbook returning raw (header-less) DataFrames keyed by sheet name.

    Parameters
    ----------
    source: file path, raw uploaded bytes or a binary file object
    """
    if isinstance(source, (bytes, bytearray)):
        if not source:
            raise WorkbookReadError("uploaded file is empty")
        source = io.BytesIO(source)
    try:
        xls = pd.ExcelFile(source)
    except Exception as e:  # pandas raises ValueError / BadZipFile / OSError depending on input
        raise WorkbookReadError(f"unreadable workbook: {e}") from e

    dfs: dict[str, pd.DataFrame] = {}
    with xls:
        for name in xls.sheet_names:
            try:
                dfs[str(name)] = xls.parse(name, header=None, keep_default_na=False)
            except Exception as e:
                raise WorkbookReadError(f"unreadable sheet '{name}': {e}") from e
    return dfs


def _clean_cell(value: Any) -> Any:
    if is_blank(value):
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    # numpy scalars -> plain python values
    if hasattr(value, "item") and not isinstance(value, (list, dict)):
        try:
            return value.item()
        except (ValueError, AttributeError):
            return value
    return value


def normalize_sheet(df: pd.DataFrame, sheet_name: str, header_row: int = 0) -> SheetData:
    """Normalize a raw DataFrame using ``header_row`` as the header.

    Steps:
    1. Validate the header row exists and names at least one column
    2. Columns with a blank header are dropped
    3. Remaining rows become RowData; fully blank rows are skipped
    """
    if df.shape[0] <= header_row:
        raise SheetHeaderError(f"sheet '{sheet_name}' lacks a header row (row {header_row + 1})")
    header = [None if is_blank(c) else str(c).strip() for c in df.iloc[header_row].tolist()]
    if not any(header):
        raise SheetHeaderError(f"sheet '{sheet_name}' header row {header_row + 1} is empty")

    columns = [c for c in header if c]
    rows: list[RowData] = []
    for position, raw in enumerate(df.iloc[header_row + 1:].itertuples(index=False, name=None)):
        values: dict[str, Any] = {}
        for col, val in zip(header, raw, strict=False):
            if col is None:
                continue
            values[col] = _clean_cell(val)
        row = RowData(row_number=header_row + 2 + position, values=values)
        if row.is_blank():
            continue
        rows.append(row)
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)
