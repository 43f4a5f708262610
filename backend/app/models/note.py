"""
DLE Backend - Note SQLAlchemy Models
======================================

What:  ORM models for diary notes and their dependent rows:
       `notes`, `note_people`, `note_tags`, `note_photos`.
Who:   NoteService for CRUD and photo handling; PersonService for a
       person's note timeline; SearchService for substring search.

Table Design:
    - importance: short enum-like string (Low, Medium, High), validated at the
      API layer rather than by a database enum so migrations stay trivial.
    - event_date: calendar date the note is about (not when it was written).
    - event_id: optional link to the ingested voice Event a note was made from.
    - note_people / note_tags: plain link tables. NoteService replaces the
      whole set on every update (delete all, reinsert).
    - note_photos.storage_key: object store key ("photos/{noteId}_{ts}_{name}").
      The public URL is derived from it, never stored.

Cascades:
    No ON DELETE CASCADE is relied upon. Deleting a note goes through
    NoteService.delete_note(), which removes blobs, photo rows and links first.

Query Patterns:
    - Timeline: ORDER BY event_date DESC, created_at DESC
      → idx_notes_event_date
    - Filter by person / tag: JOIN on the link tables
      → composite primary keys double as lookup indexes
"""

from datetime import date
from typing import Optional

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.mixins import CreatedAtMixin, TimestampMixin

IMPORTANCE_LEVELS = ("Low", "Medium", "High")
DEFAULT_CATEGORY = "General"
DEFAULT_IMPORTANCE = "Low"


class Note(TimestampMixin, Base):
    """
    A diary entry.

    Lifecycle:
        1. Created via POST /api/notes with optional people/tag links
        2. Edited via PUT /api/notes/{id} (links fully replaced)
        3. Photos attached via POST /api/notes/{id}/photos
        4. Deleted together with photos (blob + row) and links
    """

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=DEFAULT_CATEGORY,
        server_default=text(f"'{DEFAULT_CATEGORY}'"),
    )
    importance: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=DEFAULT_IMPORTANCE,
        server_default=text(f"'{DEFAULT_IMPORTANCE}'"),
    )
    event_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    event_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("events.id"), nullable=True
    )

    __table_args__ = (
        Index("idx_notes_event_date", "event_date"),
        Index("idx_notes_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, category='{self.category}', event_date='{self.event_date}')>"


class NotePerson(Base):
    """Link between a note and a person, with the person's role in it ("doctor", "friend")."""

    __tablename__ = "note_people"

    note_id: Mapped[int] = mapped_column(Integer, ForeignKey("notes.id"), primary_key=True)
    person_id: Mapped[int] = mapped_column(Integer, ForeignKey("people.id"), primary_key=True)
    role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class NoteTag(Base):
    __tablename__ = "note_tags"

    note_id: Mapped[int] = mapped_column(Integer, ForeignKey("notes.id"), primary_key=True)
    tag_id: Mapped[int] = mapped_column(Integer, ForeignKey("tags.id"), primary_key=True)


class NotePhoto(CreatedAtMixin, Base):
    """
    A photo attached to a note.

    The blob lives in the object store under `storage_key`; this row holds
    the metadata captured at upload time.
    """

    __tablename__ = "note_photos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    note_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("notes.id"), nullable=False, index=True
    )
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    @property
    def photo_url(self) -> str:
        return f"/api/photo/{self.storage_key}"

    def __repr__(self) -> str:
        return f"<NotePhoto(id={self.id}, note_id={self.note_id}, key='{self.storage_key}')>"
