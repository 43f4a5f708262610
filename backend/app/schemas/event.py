"""
DLE Backend - Ingested Event Schemas
======================================

What:  Response models for the admin views over the Telegram ingestion
       tables: events, event_data and telegram_debug_logs.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class EventResponse(BaseModel):
    id: int
    telegram_file_id: Optional[str] = None
    audio_url: Optional[str] = None
    transcription: Optional[str] = None
    raw_metadata: Optional[str] = None
    processed: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class EventDataResponse(BaseModel):
    """An extracted key/value row, with its event's transcription as a preview."""
    id: int
    event_id: int
    key: str
    value: Optional[str] = None
    created_at: datetime
    event_preview: Optional[str] = None

    model_config = {"from_attributes": True}


class TelegramDebugLogResponse(BaseModel):
    id: int
    payload: str
    sender: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
