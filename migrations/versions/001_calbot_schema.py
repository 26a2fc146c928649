"""Messages, calendar events and files (SQL-only).

Revision ID: 001_calbot_schema
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from pathlib import Path

from alembic import op


# revision identifiers, used by Alembic.
revision = "001_calbot_schema"
down_revision = None
branch_labels = None
depends_on = None


def _read_sql() -> str:
    sql_path = Path(__file__).resolve().parents[1] / "sql" / "001_calbot.sql"
    return sql_path.read_text(encoding="utf-8")


def upgrade() -> None:
    # exec_driver_sql so the DO $$ block goes through untouched
    op.get_bind().exec_driver_sql(_read_sql())


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS files")
    op.execute("ALTER TABLE IF EXISTS messages DROP CONSTRAINT IF EXISTS messages_event_id_fkey")
    op.execute("DROP TABLE IF EXISTS calendar_events")
    op.execute("DROP TABLE IF EXISTS messages")
