from __future__ import annotations

import re
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERT ... ON CONFLICT DO UPDATE via psycopg2.extras.execute_values.

The caller owns the transaction boundary (BEGIN / COMMIT / ROLLBACK); this
module only issues the statement(s). Rows sharing a conflict key must be
deduplicated beforehand: PostgreSQL refuses to update the same row twice in
one command.
"""

__all__ = [
    "UpsertError",
    "UpsertResult",
    "batch_upsert",
    "build_upsert_sql",
]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class UpsertError(Exception):
    pass


@dataclass(frozen=True)
class UpsertResult:
    affected_rows: int
    elapsed_seconds: float


def _quote(identifier: str) -> str:
    if not _IDENTIFIER.match(identifier):
        raise UpsertError(f"invalid identifier: {identifier!r}")
    return f'"{identifier}"'


def build_upsert_sql(
    table: str,
    columns: Sequence[str],
    conflict_columns: Sequence[str],
    touch_column: str | None = "updated_at",
) -> str:
    """SQL template with a single ``VALUES %s`` placeholder for execute_values."""
    if not columns:
        raise UpsertError("no columns to upsert")
    missing = [c for c in conflict_columns if c not in columns]
    if missing:
        raise UpsertError(f"conflict columns not in column list: {missing}")

    cols_sql = ",".join(_quote(c) for c in columns)
    conflict_sql = ",".join(_quote(c) for c in conflict_columns)
    updates = [f"{_quote(c)} = EXCLUDED.{_quote(c)}" for c in columns if c not in conflict_columns]
    if touch_column is not None and updates:
        updates.append(f"{_quote(touch_column)} = now()")

    base_sql = f"INSERT INTO {_quote(table)} ({cols_sql}) VALUES %s ON CONFLICT ({conflict_sql})"
    if updates:
        return f"{base_sql} DO UPDATE SET {', '.join(updates)}"
    return f"{base_sql} DO NOTHING"


def batch_upsert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_columns: Sequence[str],
    touch_column: str | None = "updated_at",
    page_size: int = 1000,
) -> UpsertResult:
    """Insert-or-update ``rows`` keyed by ``conflict_columns``.

    Parameters
    ----------
    cursor: psycopg2 cursor (inside a transaction opened by the caller)
    table: target table
    columns: column order of each row tuple
    rows: row tuples
    conflict_columns: natural key columns (must have a unique constraint)
    touch_column: column set to now() on update (None to skip)
    page_size: execute_values page size

    Raises
    ------
    UpsertError: invalid identifiers or any backend error
    """
    rows_list = [tuple(r) for r in rows]
    if not rows_list:
        return UpsertResult(affected_rows=0, elapsed_seconds=0.0)

    sql = build_upsert_sql(table, columns, conflict_columns, touch_column=touch_column)

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    except Exception as e:
        raise UpsertError(str(e)) from e
    elapsed = time.time() - start_time

    return UpsertResult(affected_rows=len(rows_list), elapsed_seconds=elapsed)
