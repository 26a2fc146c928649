"""Calendar events repository.

Uses raw SQL with psycopg2 (no ORM). Listings are scoped either to a user's
personal events (``group_id IS NULL``) or to one group.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from calbot.domain.models import CalendarEvent

_COLUMNS = """
    id, title, description, start_at, end_at, all_day, color, label, location,
    completed, user_id, group_id, message_id, created_at, updated_at
"""

# API field name -> column, for partial updates
UPDATABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "start": "start_at",
    "end": "end_at",
    "all_day": "all_day",
    "color": "color",
    "label": "label",
    "location": "location",
    "completed": "completed",
}


def _row_to_event(row: tuple) -> CalendarEvent:
    return CalendarEvent(
        id=str(row[0]),
        title=row[1],
        description=row[2],
        start=row[3],
        end=row[4],
        all_day=row[5],
        color=row[6],
        label=row[7],
        location=row[8],
        completed=row[9],
        user_id=row[10],
        group_id=row[11],
        message_id=row[12],
        created_at=row[13],
        updated_at=row[14],
    )


def _scope_clause(*, user_id: str | None, group_id: str | None) -> tuple[str, list[Any]]:
    if group_id:
        return "group_id = %s", [group_id]
    if user_id:
        return "user_id = %s AND group_id IS NULL", [user_id]
    raise ValueError("either user_id or group_id is required")


def insert_event(
    cur: PgCursor,
    *,
    title: str,
    start: datetime,
    end: datetime,
    user_id: str,
    all_day: bool = False,
    description: str | None = None,
    color: str | None = None,
    label: str | None = None,
    location: str | None = None,
    group_id: str | None = None,
    message_id: str | None = None,
) -> CalendarEvent:
    """Insert a calendar event.

    Raises:
        psycopg2.errors.UniqueViolation: If an event already exists for
            ``message_id``.
    """
    cur.execute(
        f"""
        INSERT INTO calendar_events (
            title, description, start_at, end_at, all_day, color, label,
            location, user_id, group_id, message_id
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING {_COLUMNS}
        """,
        (
            title,
            description,
            start,
            end,
            all_day,
            color,
            label,
            location,
            user_id,
            group_id,
            message_id,
        ),
    )
    return _row_to_event(cur.fetchone())


def get_event(cur: PgCursor, *, event_id: str) -> CalendarEvent | None:
    cur.execute(f"SELECT {_COLUMNS} FROM calendar_events WHERE id = %s", (event_id,))
    row = cur.fetchone()
    return _row_to_event(row) if row else None


def update_event(
    cur: PgCursor,
    *,
    event_id: str,
    fields: dict[str, Any],
) -> CalendarEvent | None:
    """Apply a partial update.

    Args:
        cur: Database cursor.
        event_id: Event UUID.
        fields: Subset of UPDATABLE_FIELDS keys to new values.

    Returns:
        The updated event, or None if it does not exist.

    Raises:
        ValueError: If ``fields`` names a column that cannot be updated.
    """
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"cannot update fields: {sorted(unknown)}")
    if not fields:
        return get_event(cur, event_id=event_id)

    assignments = ", ".join(f"{UPDATABLE_FIELDS[name]} = %s" for name in fields)
    cur.execute(
        f"""
        UPDATE calendar_events
        SET {assignments}, updated_at = now()
        WHERE id = %s
        RETURNING {_COLUMNS}
        """,
        (*fields.values(), event_id),
    )
    row = cur.fetchone()
    return _row_to_event(row) if row else None


def delete_event(cur: PgCursor, *, event_id: str) -> bool:
    cur.execute("DELETE FROM calendar_events WHERE id = %s", (event_id,))
    return cur.rowcount > 0


def list_events(
    cur: PgCursor,
    *,
    user_id: str | None = None,
    group_id: str | None = None,
    start_after: datetime | None = None,
    end_before: datetime | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CalendarEvent], int]:
    """List events in one scope, earliest first.

    Returns:
        Tuple of (events on this page, total matching count).
    """
    where, params = _scope_clause(user_id=user_id, group_id=group_id)
    if start_after is not None:
        where += " AND start_at >= %s"
        params.append(start_after)
    if end_before is not None:
        where += " AND end_at <= %s"
        params.append(end_before)

    cur.execute(f"SELECT count(*) FROM calendar_events WHERE {where}", params)
    total = cur.fetchone()[0]

    cur.execute(
        f"""
        SELECT {_COLUMNS} FROM calendar_events
        WHERE {where}
        ORDER BY start_at ASC, id ASC
        LIMIT %s OFFSET %s
        """,
        (*params, limit, offset),
    )
    return [_row_to_event(row) for row in cur.fetchall()], total


def list_incomplete_expired(
    cur: PgCursor,
    *,
    now: datetime,
    user_id: str | None = None,
    group_id: str | None = None,
) -> list[CalendarEvent]:
    """Events in one scope that ended before ``now`` and are not completed."""
    where, params = _scope_clause(user_id=user_id, group_id=group_id)
    cur.execute(
        f"""
        SELECT {_COLUMNS} FROM calendar_events
        WHERE {where} AND completed = false AND end_at < %s
        ORDER BY end_at DESC
        """,
        (*params, now),
    )
    return [_row_to_event(row) for row in cur.fetchall()]
