"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an alembic context.
DATABASE_URL may be a URL (postgres://, postgresql://, postgresql+psycopg2://)
or a libpq key=value DSN; DB_PASSWORD fills in a missing password for both.
"""

from __future__ import annotations

import os

from psycopg2.extensions import parse_dsn
from sqlalchemy.engine import URL, make_url

DRIVERNAME = "postgresql+psycopg2"


def _db_password() -> str | None:
    return os.environ.get("DB_PASSWORD") or None


def dsn_to_url(dsn: str) -> URL:
    """Convert a libpq key=value DSN to a SQLAlchemy URL.

    A host starting with "/" is a unix socket directory and is passed as the
    host query argument.
    """
    params = parse_dsn(dsn)
    password = params.get("password") or _db_password()
    host = params.get("host", "localhost")

    if host.startswith("/"):
        return URL.create(
            DRIVERNAME,
            username=params.get("user"),
            password=password,
            database=params.get("dbname"),
            query={"host": host},
        )

    return URL.create(
        DRIVERNAME,
        username=params.get("user"),
        password=password,
        host=host,
        port=int(params.get("port", 5432)),
        database=params.get("dbname"),
    )


def normalize_url(raw: str) -> URL:
    """Force the psycopg2 driver and inject DB_PASSWORD when absent."""
    if raw.startswith("postgres://"):
        raw = "postgresql://" + raw[len("postgres://"):]
    url = make_url(raw)
    if url.drivername == "postgresql":
        url = url.set(drivername=DRIVERNAME)
    if not url.password and _db_password():
        url = url.set(password=_db_password())
    return url


def get_database_url() -> str:
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    url = normalize_url(raw) if "://" in raw else dsn_to_url(raw)
    return url.render_as_string(hide_password=False)
