"""Database access layer using psycopg2.

Every repository call runs in its own short transaction opened by ``txn``;
connections are not pooled.
"""

import os
from contextlib import contextmanager
from typing import Iterator

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

# seconds
CONNECT_TIMEOUT = 5


def get_conn(dsn: str | None = None) -> PgConnection:
    """Open a new database connection.

    Args:
        dsn: Connection string. Falls back to DATABASE_URL.

    Raises:
        RuntimeError: If no DSN is given and DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = dsn or os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")
    return psycopg2.connect(dsn, connect_timeout=CONNECT_TIMEOUT)


@contextmanager
def txn(conn: PgConnection | None = None, *, dsn: str | None = None) -> Iterator[PgCursor]:
    """Run the block in one transaction.

    Commits on success and rolls back on exception. A connection opened here
    from ``dsn`` is closed on exit; a passed-in ``conn`` is left open.

    Example:
        with txn(dsn=settings.database_url) as cur:
            cur.execute("UPDATE files SET file_name = %s WHERE file_id = %s", (name, fid))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn(dsn)

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
