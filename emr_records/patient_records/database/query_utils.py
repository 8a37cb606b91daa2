"""Parameterized statement execution against the records database."""

import logging
import sqlite3
from typing import Any, Sequence

logger = logging.getLogger(__name__)


class QueryExecutionError(Exception):
    """Raised when the database driver fails to execute a statement."""

    def __init__(self, message: str, sql: str | None = None):
        super().__init__(message)
        self.sql = sql


def sql_statement_throw_exception(
    conn: sqlite3.Connection,
    sql: str,
    binds: Sequence[Any] = (),
) -> sqlite3.Cursor:
    """Execute a statement and return its cursor.

    Driver errors are wrapped in QueryExecutionError and left for the caller.
    """
    logger.debug("Executing statement with %d bound values", len(binds))
    try:
        return conn.execute(sql, list(binds))
    except sqlite3.Error as e:
        logger.error("Statement failed: %s", e)
        raise QueryExecutionError(f"Failed to execute statement: {e}", sql=sql) from e


def fetch_single_value(
    conn: sqlite3.Connection,
    sql: str,
    column: str,
    binds: Sequence[Any] = (),
) -> Any:
    """Return one column of the first row, or None when there are no rows."""
    row = sql_statement_throw_exception(conn, sql, binds).fetchone()
    if row is None:
        return None
    return row[column]


def sql_insert(conn: sqlite3.Connection, sql: str, binds: Sequence[Any] = ()) -> int:
    """Execute an INSERT and return the new row id."""
    cursor = sql_statement_throw_exception(conn, sql, binds)
    return cursor.lastrowid


def build_insert_columns(data: dict) -> tuple[str, list]:
    """Build the column list and placeholders for an INSERT.

    Returns ("(a, b) VALUES (?, ?)", [value_a, value_b]).
    """
    columns = list(data.keys())
    quoted = ", ".join(f'"{c}"' for c in columns)
    placeholders = ", ".join("?" for _ in columns)
    return f"({quoted}) VALUES ({placeholders})", [data[c] for c in columns]


def build_update_columns(data: dict) -> tuple[str, list]:
    """Build the SET list for an UPDATE: ('"a" = ?, "b" = ?', [value_a, value_b])."""
    set_clause = ", ".join(f'"{c}" = ?' for c in data)
    return set_clause, list(data.values())
