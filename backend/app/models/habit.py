"""
DLE Backend - Habit Tracking Models
=====================================

What:  ORM models for `habits`, `habit_logs` and `default_habits`.
Who:   HabitService.

Check-in State (per habit, per calendar date):
    absent → present-incomplete → present-completed

    There is at most one habit_logs row per (habit_id, log_date). This is
    enforced by HabitService (select-then-insert/update), not by a unique
    constraint, so historical duplicate rows from older data still load.

default_habits:
    Template rows copied into `habits` by POST /api/people/{id}/habits/init-defaults.
    Seeded by the initial Alembic migration.
"""

from datetime import date
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text, false, text, true
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.mixins import CreatedAtMixin, TimestampMixin

DEFAULT_HABIT_ICON = "✓"
DEFAULT_HABIT_COLOR = "#3b82f6"
DEFAULT_FREQUENCY = "daily"


class Habit(TimestampMixin, Base):
    __tablename__ = "habits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    person_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("people.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    frequency: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_FREQUENCY,
        server_default=text(f"'{DEFAULT_FREQUENCY}'"),
    )
    target_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )
    icon: Mapped[str] = mapped_column(String(20), nullable=False, default=DEFAULT_HABIT_ICON)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default=DEFAULT_HABIT_COLOR)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    sort_order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    def __repr__(self) -> str:
        return f"<Habit(id={self.id}, person_id={self.person_id}, name='{self.name}')>"


class HabitLog(TimestampMixin, Base):
    """
    One check-in of a habit on one date.

    completed / count:
        `toggle` keeps count mirrored to completed (1/0); `log` may set any
        count (e.g. 3 glasses of water against a target of 8).
    note / transcription / voice_url:
        Free text and the latest voice note for the day. Voice notes append
        their transcription to `note`.
    """

    __tablename__ = "habit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    habit_id: Mapped[int] = mapped_column(Integer, ForeignKey("habits.id"), nullable=False)
    person_id: Mapped[int] = mapped_column(Integer, ForeignKey("people.id"), nullable=False)
    log_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transcription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    voice_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    __table_args__ = (
        Index("idx_habit_logs_habit_date", "habit_id", "log_date"),
        Index("idx_habit_logs_person_date", "person_id", "log_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<HabitLog(habit_id={self.habit_id}, log_date='{self.log_date}', "
            f"completed={self.completed})>"
        )


class DefaultHabit(CreatedAtMixin, Base):
    __tablename__ = "default_habits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(20), nullable=False, default=DEFAULT_HABIT_ICON)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default=DEFAULT_HABIT_COLOR)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
