"""
DLE Backend - Ingested Event Models
=====================================

What:  ORM models written by the Telegram ingestion pipeline:
       `events`, `event_data`, `telegram_debug_logs`.
Who:   IngestionService writes; EventService lists for the admin views.

events:
    One row per ingested voice message (duplicates on webhook redelivery are
    expected; there is no dedup key). `processed` flips to true only after
    the AI extraction rows were written.

event_data:
    Loose key/value sidecar for extracted fields. Keys written today:
    summary, category, importance, entities (JSON text). No schema on the
    key set; readers must tolerate unknown keys.

telegram_debug_logs:
    Raw inbound webhook payloads, written before any processing so a failed
    run can be inspected afterwards.
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.mixins import CreatedAtMixin


class Event(CreatedAtMixin, Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_file_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    audio_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    transcription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    raw_metadata: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, processed={self.processed})>"


class EventData(CreatedAtMixin, Base):
    __tablename__ = "event_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class TelegramDebugLog(CreatedAtMixin, Base):
    __tablename__ = "telegram_debug_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    sender: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
