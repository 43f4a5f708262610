"""
DLE Backend - Person Model
============================

What:  ORM model for the `people` table: family members and contacts the
       diary refers to.
Who:   PersonService (CRUD), NoteService (note links), HabitService (owners).

Relationships (resolved with explicit queries, no ORM relationship()):
    - note_people.person_id → people.id (with a per-link role)
    - habits.person_id      → people.id
    - habit_logs.person_id  → people.id
"""

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.mixins import TimestampMixin


class Person(TimestampMixin, Base):
    __tablename__ = "people"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    relationship: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, name='{self.name}')>"
