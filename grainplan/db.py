from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import streamlit as st

from grainplan.errors import DataAccessError
from grainplan.schema import SCHEMA_SQL

logger = logging.getLogger(__name__)

# get_conn hands one connection to every Streamlit session, and a sqlite3
# connection has a single transaction. Writers hold this lock so one session's
# commit or rollback never lands in the middle of another's unit of work.
_write_lock = threading.RLock()


def connect(db_path: Path | str) -> sqlite3.Connection:
    try:
        conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=10.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
    except sqlite3.Error as e:
        raise DataAccessError(f"Cannot open database {db_path}: {e}") from e
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    return connect(db_path)


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def ensure_schema(conn: sqlite3.Connection) -> None:
    try:
        with _write_lock:
            # Create base schema (for new installs)
            conn.executescript(SCHEMA_SQL)

            # ---- migrations for existing installs ----
            if not _column_exists(conn, "scenarios", "deleted_at"):
                conn.execute("ALTER TABLE scenarios ADD COLUMN deleted_at TEXT;")

            if not _column_exists(conn, "scenario_sales", "contract_month"):
                conn.execute("ALTER TABLE scenario_sales ADD COLUMN contract_month TEXT;")

            conn.commit()
    except sqlite3.Error as e:
        raise DataAccessError(f"Schema setup failed: {e}") from e


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    All-or-nothing unit of work. Statements inside must use commit=False;
    the block commits on success and rolls back on any exception.
    Reads done inside the block see no other writer's changes until it ends.
    """
    with _write_lock:
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    try:
        cur = conn.execute(sql, tuple(params))
        rows = cur.fetchall()
        cur.close()
    except sqlite3.Error as e:
        logger.error("Query failed: %s", e)
        raise DataAccessError(str(e)) from e
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = (), *, commit: bool = True) -> int:
    try:
        with _write_lock:
            cur = conn.execute(sql, tuple(params))
            if commit:
                conn.commit()
            last = cur.lastrowid
            cur.close()
    except sqlite3.Error as e:
        logger.error("Write failed: %s", e)
        raise DataAccessError(str(e)) from e
    return int(last or 0)


def u(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = (), *, commit: bool = True) -> int:
    """Like x() but returns the number of affected rows (for conditional updates)."""
    try:
        with _write_lock:
            cur = conn.execute(sql, tuple(params))
            if commit:
                conn.commit()
            n = cur.rowcount
            cur.close()
    except sqlite3.Error as e:
        logger.error("Update failed: %s", e)
        raise DataAccessError(str(e)) from e
    return int(n)
