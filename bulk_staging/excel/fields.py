from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..errors import RowValidationError

"""Cell value coercion helpers shared by the row builders.

Each helper either returns a normalized value or raises RowValidationError;
callers record the error on the row and leave the field unset.
"""

__all__ = [
    "canonical_header",
    "to_text",
    "to_int",
    "parse_date",
    "split_list",
    "numbered_values",
]

# Spreadsheet serial dates count days from 1899-12-30 (the 1900 leap-year bug offset)
_SERIAL_EPOCH = pd.Timestamp("1899-12-30")
_SERIAL_MAX = 2958465  # 9999-12-31

_ISO_DATE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[T ].*)?$")
_SLASHED_DATE = re.compile(r"^\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}$")


def canonical_header(name: str) -> str:
    """Lower-case a header and drop everything but letters and digits."""
    return re.sub(r"[^0-9a-z]", "", str(name).lower())


def to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def to_int(field: str, value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise RowValidationError(field, f"expected a whole number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = str(value).strip()
    if re.fullmatch(r"[+-]?\d+(\.0+)?", text):
        return int(float(text))
    raise RowValidationError(field, f"expected a whole number, got '{value}'")


def _from_serial(field: str, serial: float) -> date:
    if not 1 <= serial <= _SERIAL_MAX:
        raise RowValidationError(field, f"date serial {serial} out of range")
    return (_SERIAL_EPOCH + pd.Timedelta(days=int(serial))).date()


def parse_date(field: str, value: Any) -> date | None:
    """Normalize an ISO-like string, a datetime or a spreadsheet serial number.

    Day-first / month-first strings such as ``03/04/2026`` are ambiguous and
    rejected rather than guessed.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise RowValidationError(field, f"unrecognized date {value!r}")
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _from_serial(field, float(value))

    text = str(value).strip()
    if not text:
        return None
    if re.fullmatch(r"\d+(\.\d+)?", text):
        return _from_serial(field, float(text))
    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError as e:
            raise RowValidationError(field, f"invalid date '{text}': {e}") from None
    if _SLASHED_DATE.match(text):
        raise RowValidationError(field, f"ambiguous date '{text}', use YYYY-MM-DD")
    raise RowValidationError(field, f"unrecognized date '{text}'")


def split_list(value: Any, delimiter: str) -> list[str]:
    """Split a delimiter-joined cell into trimmed, non-empty entries."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts = [to_text(v) for v in value]
    else:
        text = to_text(value) or ""
        parts = text.split(delimiter)
    return [p.strip() for p in parts if p and p.strip()]


def numbered_values(fields: dict[str, Any], prefixes: tuple[str, ...]) -> list[str]:
    """Collect ``prefix1``, ``prefix2`` ... columns in numeric order, skipping blanks.

    ``fields`` is keyed by canonical header names.
    """
    found: dict[int, str] = {}
    for key, value in fields.items():
        for prefix in prefixes:
            m = re.fullmatch(rf"{prefix}(\d+)", key)
            if m:
                text = to_text(value)
                if text:
                    found[int(m.group(1))] = text
                break
    return [found[n] for n in sorted(found)]
