"""Database client.

Thread-local connection reuse for the foundation database (MySQL protocol).
Each thread gets a persistent connection that reconnects on failure. Every
statement autocommits; the import relies on single-row atomicity only.
"""

import os
import threading
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Generator

import pymysql
from pymysql.cursors import DictCursor

from ..constants import CONNECTION_TIMEOUT_SECONDS, DEFAULT_ROW_TIMEOUT_SECONDS

_thread_local = threading.local()


@lru_cache(maxsize=1)
def _get_config() -> dict:
    """Get connection configuration.

    Environment variables:
        GRANTS_DB_HOST: Database host (default: 127.0.0.1)
        GRANTS_DB_PORT: Database port (default: 3306)
        GRANTS_DB_USER: Database user (default: root)
        GRANTS_DB_PASSWORD: Database password (default: empty)
        GRANTS_DB_DATABASE: Database name (default: grants)
        GRANTS_DB_TIMEOUT: Read/write timeout in seconds for a single statement

    Returns:
        Connection config dict
    """
    statement_timeout = int(os.environ.get("GRANTS_DB_TIMEOUT", str(DEFAULT_ROW_TIMEOUT_SECONDS)))
    return {
        "host": os.environ.get("GRANTS_DB_HOST", "127.0.0.1"),
        "port": int(os.environ.get("GRANTS_DB_PORT", "3306")),
        "user": os.environ.get("GRANTS_DB_USER", "root"),
        "password": os.environ.get("GRANTS_DB_PASSWORD", ""),
        "database": os.environ.get("GRANTS_DB_DATABASE", "grants"),
        "autocommit": True,
        "charset": "utf8mb4",
        "cursorclass": DictCursor,
        "connect_timeout": CONNECTION_TIMEOUT_SECONDS,
        "read_timeout": statement_timeout,
        "write_timeout": statement_timeout,
    }


def get_connection() -> pymysql.Connection:
    """Get a thread-local database connection, reusing if alive.

    Returns:
        PyMySQL connection (reused per thread, reconnects on failure)
    """
    conn = getattr(_thread_local, "conn", None)
    if conn is not None:
        try:
            conn.ping(reconnect=False)
            return conn
        except pymysql.MySQLError:
            try:
                conn.close()
            except pymysql.MySQLError:
                pass
    conn = pymysql.connect(**_get_config())
    _thread_local.conn = conn
    return conn


def reset_connection() -> None:
    """Drop this thread's connection so the next call reconnects."""
    _thread_local.conn = None


@contextmanager
def get_cursor() -> Generator[Any, None, None]:
    """Context manager for a dict cursor on the thread-local connection.

    Example:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM organizations WHERE id = %s", (org_id,))
            row = cursor.fetchone()
    """
    conn = get_connection()
    with conn.cursor() as cursor:
        yield cursor


def execute_query(sql: str, params: tuple | None = None, fetch: str = "all") -> list[dict] | dict | int | None:
    """Execute a query and return results.

    Args:
        sql: SQL query with %s placeholders
        params: Query parameters
        fetch: 'all' for fetchall(), 'one' for fetchone(), 'rowcount' for the
            number of affected rows, 'none' for no fetch

    Returns:
        Query results as list of dicts, single dict, affected row count, or None

    Reads retry once on a stale connection. Writes never retry, since the
    statement may already have been applied.
    """
    retry = fetch in ("all", "one")
    try:
        return _execute(sql, params, fetch)
    except pymysql.OperationalError:
        reset_connection()
        if not retry:
            raise
        return _execute(sql, params, fetch)


def _execute(sql: str, params: tuple | None, fetch: str) -> list[dict] | dict | int | None:
    with get_cursor() as cursor:
        affected = cursor.execute(sql, params or ())

        if fetch == "all":
            return cursor.fetchall()
        elif fetch == "one":
            return cursor.fetchone()
        elif fetch == "rowcount":
            return affected
        return None


def check_connection() -> bool:
    """Test database connectivity.

    Returns:
        True if connection succeeds, False otherwise
    """
    try:
        with get_cursor() as cursor:
            cursor.execute("SELECT 1")
            return True
    except pymysql.MySQLError:
        return False
