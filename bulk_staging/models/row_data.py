from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""RowData model: one non-empty worksheet row after header normalization."""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """Logical representation of a single row after sheet normalization.

    ``row_number`` is the 1-based row number in the worksheet, used to point
    moderators at the offending row in parse errors.
    """
    row_number: int  # worksheet row number (header row excluded)
    values: dict[str, Any]  # header text -> cell value (blank cells -> None)

    def is_blank(self) -> bool:
        return all(v is None for v in self.values.values())
