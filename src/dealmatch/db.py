"""PostgreSQL access for the CRM's prospect, catalog and match tables.

The scoring core never touches the database directly; only the thin
``store`` modules in each sub-package call into here.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import psycopg
from psycopg.rows import dict_row

from dealmatch.config import Settings, get_settings


def get_connection(settings: Settings | None = None) -> psycopg.Connection:
    """Open a CRM connection that yields dict rows.

    Every statement runs under the configured ``statement_timeout`` (0
    disables it) and is tagged with ``application_name`` so long rescans are
    identifiable in ``pg_stat_activity``.
    """
    settings = settings or get_settings()
    return psycopg.connect(
        settings.database_url,
        row_factory=dict_row,
        application_name=settings.application_name,
        options=f"-c statement_timeout={settings.statement_timeout_ms}",
    )


@contextmanager
def connect(settings: Settings | None = None) -> Iterator[psycopg.Connection]:
    """Connection scope for one CLI run: commit on success, roll back on error."""
    conn = get_connection(settings)
    try:
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def execute_query(conn: psycopg.Connection, query: str, params: tuple = ()) -> list[dict]:
    """Run *query* and return every result row (empty for statements without rows)."""
    with conn.cursor() as cur:
        cur.execute(query, params)
        if cur.description:
            return cur.fetchall()
        return []


def fetch_one(conn: psycopg.Connection, query: str, params: tuple = ()) -> dict | None:
    """Run *query* and return its first row, or ``None`` when nothing matched."""
    rows = execute_query(conn, query, params)
    return rows[0] if rows else None
