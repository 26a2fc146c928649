"""Files repository: metadata for backed-up chat files and uploads.

Uses raw SQL with psycopg2 (no ORM). The bytes live in object storage; this
table only records where and whose they are.
"""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor

from calbot.domain.models import StoredFile

_COLUMNS = """
    id, file_id, user_id, file_name, file_size, mime_type, group_id,
    created_at, updated_at
"""

SORT_COLUMNS = {
    "createdAt": "created_at",
    "fileName": "file_name",
    "fileSize": "file_size",
}


def _row_to_file(row: tuple) -> StoredFile:
    return StoredFile(
        id=str(row[0]),
        file_id=row[1],
        user_id=row[2],
        file_name=row[3],
        file_size=row[4],
        mime_type=row[5],
        group_id=row[6],
        created_at=row[7],
        updated_at=row[8],
    )


def insert_file(
    cur: PgCursor,
    *,
    file_id: str,
    user_id: str,
    file_name: str,
    file_size: int,
    mime_type: str,
    group_id: str | None = None,
) -> StoredFile:
    """Record file metadata.

    Raises:
        psycopg2.errors.UniqueViolation: If ``file_id`` already exists.
    """
    cur.execute(
        f"""
        INSERT INTO files (file_id, user_id, file_name, file_size, mime_type, group_id)
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING {_COLUMNS}
        """,
        (file_id, user_id, file_name, file_size, mime_type, group_id),
    )
    return _row_to_file(cur.fetchone())


def get_file(cur: PgCursor, *, file_id: str) -> StoredFile | None:
    cur.execute(f"SELECT {_COLUMNS} FROM files WHERE file_id = %s", (file_id,))
    row = cur.fetchone()
    return _row_to_file(row) if row else None


def rename_file(cur: PgCursor, *, file_id: str, file_name: str) -> StoredFile | None:
    cur.execute(
        f"""
        UPDATE files SET file_name = %s, updated_at = now()
        WHERE file_id = %s
        RETURNING {_COLUMNS}
        """,
        (file_name, file_id),
    )
    row = cur.fetchone()
    return _row_to_file(row) if row else None


def delete_file(cur: PgCursor, *, file_id: str) -> bool:
    cur.execute("DELETE FROM files WHERE file_id = %s", (file_id,))
    return cur.rowcount > 0


def list_files(
    cur: PgCursor,
    *,
    user_id: str | None = None,
    group_id: str | None = None,
    name_filter: str | None = None,
    sort_by: str = "createdAt",
    descending: bool = True,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StoredFile], int]:
    """List files in one scope.

    Args:
        cur: Database cursor.
        user_id: Owner for personal listings (ignored when group_id is set).
        group_id: Group for shared listings.
        name_filter: Case-insensitive substring match on file name.
        sort_by: Key of SORT_COLUMNS.
        descending: Sort direction.
        limit: Page size.
        offset: Rows to skip.

    Returns:
        Tuple of (files on this page, total matching count).

    Raises:
        ValueError: If neither scope is given or sort_by is unknown.
    """
    if group_id:
        where, params = "group_id = %s", [group_id]
    elif user_id:
        where, params = "user_id = %s AND group_id IS NULL", [user_id]
    else:
        raise ValueError("either user_id or group_id is required")

    if sort_by not in SORT_COLUMNS:
        raise ValueError(f"unknown sort key: {sort_by}")

    if name_filter:
        where += " AND file_name ILIKE %s"
        params.append(f"%{name_filter}%")

    cur.execute(f"SELECT count(*) FROM files WHERE {where}", params)
    total = cur.fetchone()[0]

    direction = "DESC" if descending else "ASC"
    cur.execute(
        f"""
        SELECT {_COLUMNS} FROM files
        WHERE {where}
        ORDER BY {SORT_COLUMNS[sort_by]} {direction}, id {direction}
        LIMIT %s OFFSET %s
        """,
        (*params, limit, offset),
    )
    return [_row_to_file(row) for row in cur.fetchall()], total
