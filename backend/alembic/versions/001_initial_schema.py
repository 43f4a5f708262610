"""Initial diary schema

Revision ID: 001
Revises: None
Create Date: 2024-06-01 00:00:00.000000+00:00

What:  Creates the twelve diary tables and seeds the default habit templates.
How:   Portable column types only (integer keys, TIMESTAMP WITH TIME ZONE,
       boolean server defaults via sa.true()/sa.false()), so the same
       revision runs on PostgreSQL and SQLite.

Table order follows the foreign keys:
    people, tags, events → notes → note_people, note_tags, note_photos
    → habits → habit_logs; event_data, telegram_debug_logs, default_habits

No ON DELETE CASCADE: deletes cascade in the service layer.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


DEFAULT_HABITS = [
    {"name": "Drink Water", "description": "8 glasses a day", "icon": "💧", "color": "#3b82f6", "sort_order": 1},
    {"name": "Exercise", "description": "At least 30 minutes", "icon": "🏃", "color": "#22c55e", "sort_order": 2},
    {"name": "Read", "description": "Read for 20 minutes", "icon": "📚", "color": "#a855f7", "sort_order": 3},
    {"name": "Meditate", "description": "10 minutes of quiet", "icon": "🧘", "color": "#14b8a6", "sort_order": 4},
    {"name": "Sleep by 11", "description": "Lights out before 11 pm", "icon": "😴", "color": "#6366f1", "sort_order": 5},
    {"name": "Take Medicine", "description": "Daily medication", "icon": "💊", "color": "#ef4444", "sort_order": 6},
]


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    # ── Entities ──────────────────────────────────────────────────────────
    op.create_table(
        "people",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("relationship", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.String(1024), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_people_name", "people", ["name"])

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("color", sa.String(20), nullable=False, server_default=sa.text("'#3b82f6'")),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("telegram_file_id", sa.String(255), nullable=True),
        sa.Column("audio_url", sa.String(1024), nullable=True),
        sa.Column("transcription", sa.Text(), nullable=True),
        sa.Column("raw_metadata", sa.Text(), nullable=True),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Notes ─────────────────────────────────────────────────────────────
    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default=sa.text("'General'")),
        sa.Column("importance", sa.String(10), nullable=False, server_default=sa.text("'Low'")),
        sa.Column("event_date", sa.Date(), nullable=True),
        sa.Column("event_id", sa.Integer(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notes_event_date", "notes", ["event_date"])
    op.create_index("idx_notes_category", "notes", ["category"])

    op.create_table(
        "note_people",
        sa.Column("note_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(100), nullable=True),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("note_id", "person_id"),
    )

    op.create_table(
        "note_tags",
        sa.Column("note_id", sa.Integer(), nullable=False),
        sa.Column("tag_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"]),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"]),
        sa.PrimaryKeyConstraint("note_id", "tag_id"),
    )

    op.create_table(
        "note_photos",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("note_id", sa.Integer(), nullable=False),
        sa.Column("storage_key", sa.String(1024), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(100), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_note_photos_note_id", "note_photos", ["note_id"])

    # ── Habits ────────────────────────────────────────────────────────────
    op.create_table(
        "habits",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", sa.String(20), nullable=False, server_default=sa.text("'daily'")),
        sa.Column("target_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("icon", sa.String(20), nullable=False),
        sa.Column("color", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_habits_person_id", "habits", ["person_id"])

    op.create_table(
        "habit_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("habit_id", sa.Integer(), nullable=False),
        sa.Column("person_id", sa.Integer(), nullable=False),
        sa.Column("log_date", sa.Date(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("transcription", sa.Text(), nullable=True),
        sa.Column("voice_url", sa.String(1024), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_habit_logs_habit_date", "habit_logs", ["habit_id", "log_date"])
    op.create_index("idx_habit_logs_person_date", "habit_logs", ["person_id", "log_date"])

    default_habits = op.create_table(
        "default_habits",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(20), nullable=False),
        sa.Column("color", sa.String(20), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Telegram ingestion ────────────────────────────────────────────────
    op.create_table(
        "event_data",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_event_data_event_id", "event_data", ["event_id"])

    op.create_table(
        "telegram_debug_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("sender", sa.String(255), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.bulk_insert(default_habits, DEFAULT_HABITS)


def downgrade() -> None:
    op.drop_table("telegram_debug_logs")
    op.drop_index("ix_event_data_event_id", table_name="event_data")
    op.drop_table("event_data")
    op.drop_table("default_habits")
    op.drop_index("idx_habit_logs_person_date", table_name="habit_logs")
    op.drop_index("idx_habit_logs_habit_date", table_name="habit_logs")
    op.drop_table("habit_logs")
    op.drop_index("ix_habits_person_id", table_name="habits")
    op.drop_table("habits")
    op.drop_index("ix_note_photos_note_id", table_name="note_photos")
    op.drop_table("note_photos")
    op.drop_table("note_tags")
    op.drop_table("note_people")
    op.drop_index("idx_notes_category", table_name="notes")
    op.drop_index("idx_notes_event_date", table_name="notes")
    op.drop_table("notes")
    op.drop_table("events")
    op.drop_table("tags")
    op.drop_index("ix_people_name", table_name="people")
    op.drop_table("people")
