"""Database access layer using psycopg2.

Provides:
- get_conn(): Get a database connection from DATABASE_URL
- txn(): Context manager for one short unit of work
- fetchone/fetchall: Query helpers
- for_update() / for_update_all(): SELECT ... FOR UPDATE helpers

Every occupancy transition runs inside exactly one txn(); row locks taken with
the FOR UPDATE helpers are held until that transaction commits or rolls back.
"""

import os
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    DATABASE_URL may be a URL (postgres://...) or a libpq key=value DSN.
    When it carries no password and DB_PASSWORD is set, the password is
    passed separately so secrets can live outside the DSN.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    db_password = os.environ.get("DB_PASSWORD")
    if db_password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=db_password)
    return psycopg2.connect(dsn)


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on any exception so that a
    failed transition never leaves a half-applied room or booking write.

    Example:
        with txn() as cur:
            cur.execute("UPDATE rooms SET ... WHERE id = %s", (room_id,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def fetchone(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute query and fetch one row (None if no results)."""
    cur.execute(query, params)
    return cur.fetchone()


def fetchall(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> list[tuple[Any, ...]]:
    """Execute query and fetch all rows."""
    cur.execute(query, params)
    return cur.fetchall()


def _lock_suffix(nowait: bool, skip_locked: bool) -> str:
    if nowait and skip_locked:
        raise ValueError("Cannot use both nowait and skip_locked")

    suffix = " FOR UPDATE"
    if nowait:
        suffix += " NOWAIT"
    elif skip_locked:
        suffix += " SKIP LOCKED"
    return suffix


def for_update(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
    *,
    nowait: bool = False,
    skip_locked: bool = False,
) -> tuple[Any, ...] | None:
    """Execute SELECT ... FOR UPDATE and fetch one row.

    Appends the FOR UPDATE clause to the query. Use within a transaction
    to lock the selected row until commit/rollback.

    Raises:
        ValueError: If both nowait and skip_locked are True.
    """
    full_query = query.rstrip().rstrip(";") + _lock_suffix(nowait, skip_locked)
    cur.execute(full_query, params)
    return cur.fetchone()


def for_update_all(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
    *,
    nowait: bool = False,
) -> list[tuple[Any, ...]]:
    """Execute SELECT ... FOR UPDATE and fetch every locked row.

    The query must carry its own ORDER BY: rows are locked in result order,
    and a fixed order is what keeps two multi-row lockers from deadlocking.
    """
    full_query = query.rstrip().rstrip(";") + _lock_suffix(nowait, False)
    cur.execute(full_query, params)
    return cur.fetchall()
