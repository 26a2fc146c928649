"""Messages repository: inbound chat messages keyed by LINE message id.

Uses raw SQL with psycopg2 (no ORM). ``messages.message_id`` carries a UNIQUE
constraint; that constraint, not the lookup below, is what guarantees a
message is recorded only once.
"""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor

from calbot.domain.models import StoredMessage

_COLUMNS = """
    id, message_id, user_id, content, message_type,
    quoted_message_id, group_id, event_id, created_at
"""


def _row_to_message(row: tuple) -> StoredMessage:
    return StoredMessage(
        id=str(row[0]),
        message_id=row[1],
        user_id=row[2],
        content=row[3],
        message_type=row[4],
        quoted_message_id=row[5],
        group_id=row[6],
        event_id=str(row[7]) if row[7] else None,
        created_at=row[8],
    )


def get_message_by_external_id(cur: PgCursor, *, message_id: str) -> StoredMessage | None:
    """Look up a message by its LINE message id.

    Args:
        cur: Database cursor.
        message_id: External (LINE) message id.

    Returns:
        StoredMessage if recorded, None otherwise.
    """
    cur.execute(
        f"SELECT {_COLUMNS} FROM messages WHERE message_id = %s",
        (message_id,),
    )
    row = cur.fetchone()
    return _row_to_message(row) if row else None


def insert_message(
    cur: PgCursor,
    *,
    message_id: str,
    user_id: str,
    content: str,
    message_type: str,
    quoted_message_id: str | None = None,
    group_id: str | None = None,
) -> StoredMessage:
    """Record an inbound message.

    Raises:
        psycopg2.errors.UniqueViolation: If ``message_id`` was already recorded.
    """
    cur.execute(
        f"""
        INSERT INTO messages (
            message_id, user_id, content, message_type, quoted_message_id, group_id
        )
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING {_COLUMNS}
        """,
        (message_id, user_id, content, message_type, quoted_message_id, group_id),
    )
    return _row_to_message(cur.fetchone())


def attach_event(cur: PgCursor, *, message_id: str, event_id: str) -> bool:
    """Link a message to the calendar event created from it.

    Returns:
        True if a message row was updated.
    """
    cur.execute(
        "UPDATE messages SET event_id = %s WHERE message_id = %s",
        (event_id, message_id),
    )
    return cur.rowcount > 0
