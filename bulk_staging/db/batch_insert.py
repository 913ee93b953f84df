from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERT helper over psycopg2.extras.execute_values.

Used by the PostgreSQL content store to create canonical content rows. When
``returning`` is given, the listed columns (or ``*``) are fetched back so the
caller can read generated primary keys.

Table and column names are expected to be trusted identifiers (they come from
code, never from workbook input); values always go through parameters.
"""

__all__ = [
    "BatchInsertError",
    "InsertResult",
    "batch_insert",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: bool | Sequence[str] = False,
    page_size: int = 1000,
) -> InsertResult:
    """Perform batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table name
    columns: inserted columns, same order as each row
    rows: row sequence
    returning: True for ``RETURNING *`` or a list of column names
    page_size: execute_values page_size
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    base_sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if returning:
        if returning is True:
            base_sql += " RETURNING *"
        else:
            base_sql += " RETURNING " + ",".join(f'"{c}"' for c in returning)

    try:
        # fetch=True collects RETURNING rows across every page
        returned = execute_values(cursor, base_sql, rows_list, page_size=page_size, fetch=bool(returning))
    except Exception as e:
        raise BatchInsertError(str(e)) from e

    return InsertResult(inserted_rows=len(rows_list), returned_values=returned if returning else None)
